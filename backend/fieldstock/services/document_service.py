# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from ..errors import ValidationError
from fieldstock.time_utils import utcnow


# document_type -> prefix
TRANSACTION_NUMBERS = "TXN"
PURCHASE_ORDER_NUMBERS = "PO"
COUNT_NUMBERS = "CNT"


def next_document_number(
    *,
    org_id: int,
    document_type: str,
    pad: int = 4,
    year: int | None = None,
) -> str:
    """
    Allocate the next document number for an organization/type/year,
    e.g. TXN-2026-0007.

    Must run inside the caller's unit of work: the sequence row stays locked
    until that transaction commits, so numbers are gap-free per commit and
    never reused.
    """
    if not org_id:
        raise ValidationError("org_id is required")
    if not document_type:
        raise ValidationError("document_type is required")
    if year is None:
        year = utcnow().year

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(org_id=org_id, document_type=document_type, year=year)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(org_id=org_id, document_type=document_type, year=year, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    return f"{document_type}-{year}-{next_num:0{pad}d}"
