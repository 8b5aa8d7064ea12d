# Overview: Pytest coverage for optimistic locking on concurrent item writes.

"""
Concurrency Tests

Covers:
1. Item rows carry a version that moves with every quantity write
2. A write from a session holding a stale item row fails with ConflictError
3. The losing write leaves no ledger row behind
4. unit_of_work maps StaleDataError to ConflictError

Uses a file-backed SQLite database so two app contexts get their own
sessions and connections over the same data.
"""

from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from fieldstock import create_app
from fieldstock.errors import ConflictError
from fieldstock.extensions import db
from fieldstock.models import InventoryItem, InventoryTransaction
from fieldstock.services import item_service, ledger_service
from fieldstock.services.concurrency import unit_of_work


ORG_ID = 1


@pytest.fixture
def file_app(tmp_path):
    """App bound to a SQLite file shared by every connection."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'fieldstock.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def stocked_item_id(file_app):
    item = item_service.create_item(ORG_ID, {
        'item_code': 'WIRE-12',
        'name': '12 AWG wire',
        'unit_cost': '2.00',
        'initial_quantity': '10',
    })
    return item.id


def _ledger_count(item_id):
    return db.session.query(InventoryTransaction).filter_by(item_id=item_id).count()


class TestVersionGuard:
    """Stale item rows never overwrite a newer projection."""

    def test_version_moves_with_each_append(self, file_app, stocked_item_id):
        before = db.session.get(InventoryItem, stocked_item_id).version_id

        ledger_service.append_transaction(
            org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-1',
        )

        assert db.session.get(InventoryItem, stocked_item_id).version_id > before

    def test_stale_writer_conflicts(self, file_app, stocked_item_id):
        # Load the item in this context's session before the other writer commits
        stale = db.session.get(InventoryItem, stocked_item_id)
        assert stale.quantity_on_hand == Decimal('10')

        with file_app.app_context():
            ledger_service.append_transaction(
                org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-4',
            )

        with pytest.raises(ConflictError):
            ledger_service.append_transaction(
                org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-3',
            )

        item = db.session.get(InventoryItem, stocked_item_id)
        assert item.quantity_on_hand == Decimal('6')
        assert item.quantity_available == Decimal('6')
        assert _ledger_count(stocked_item_id) == 2

    def test_retry_after_conflict_succeeds(self, file_app, stocked_item_id):
        db.session.get(InventoryItem, stocked_item_id)

        with file_app.app_context():
            ledger_service.append_transaction(
                org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-4',
            )

        with pytest.raises(ConflictError):
            ledger_service.append_transaction(
                org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-3',
            )

        row = ledger_service.append_transaction(
            org_id=ORG_ID, item_id=stocked_item_id, transaction_type='issue', quantity='-3',
        )
        assert row.balance_after == Decimal('3')
        assert _ledger_count(stocked_item_id) == 3

        report = ledger_service.verify_item_projection(db.session.get(InventoryItem, stocked_item_id))
        assert report['ok'] is True


class TestUnitOfWork:

    def test_stale_data_becomes_conflict(self, app, db_session):
        with pytest.raises(ConflictError):
            with unit_of_work():
                raise StaleDataError("UPDATE statement on table 'inventory_items' expected to update 1 row(s)")
