# Overview: Transaction boundaries and row locking for inventory mutations.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id_col on items catches concurrent writers at flush.
    """
    return query.with_for_update()


def lock_rows_in_id_order(model, ids) -> dict:
    """
    Lock several rows of one table, always in ascending id order so two
    multi-row operations can never deadlock each other.
    """
    unique_ids = sorted(set(ids))
    if not unique_ids:
        return {}
    rows = (
        lock_for_update(db.session.query(model).filter(model.id.in_(unique_ids)))
        .order_by(model.id.asc())
        .all()
    )
    return {row.id: row for row in rows}


@contextmanager
def unit_of_work():
    """
    One atomic database transaction: commit on success, roll back everything
    on any exception.

    Mutations are never retried here. Optimistic-lock failures and
    constraint violations surface as ConflictError so the caller can reload
    and decide.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("Record was modified concurrently; reload and retry") from exc
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Constraint violation: {exc.orig}") from exc
    except BaseException:
        db.session.rollback()
        raise
