# Overview: Pytest coverage for the transaction ledger and projection.

"""
Transaction Ledger Tests

Covers:
1. Sign conventions per transaction type
2. balance_after chain and on-hand projection
3. Insufficient stock and the optional clamp for corrections
4. Moving average cost on receipts
5. Transfers between locations
6. Ledger replay verification
"""

from datetime import date
from decimal import Decimal

import pytest

from fieldstock.errors import (
    InsufficientStockError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from fieldstock.extensions import db
from fieldstock.models import InventoryItem, InventoryTransaction
from fieldstock.services import allocation_service, ledger_service
from fieldstock.signals import ledger_appended
from fieldstock.time_utils import utcnow


ORG_ID = 1
OTHER_ORG_ID = 2


def _append(item, transaction_type, quantity, **kwargs):
    return ledger_service.append_transaction(
        org_id=ORG_ID,
        item_id=item.id,
        transaction_type=transaction_type,
        quantity=quantity,
        performed_by=7,
        **kwargs,
    )


class TestSignConventions:
    """Each type only accepts quantities of its own sign."""

    @pytest.mark.parametrize("transaction_type,quantity", [
        ("receipt", "-1"),
        ("return", "-1"),
        ("issue", "1"),
        ("write_off", "1"),
        ("adjustment", "0"),
    ])
    def test_wrong_sign_rejected(self, make_item, transaction_type, quantity):
        item = make_item(initial_quantity="10")
        with pytest.raises(ValidationError):
            _append(item, transaction_type, quantity)

    def test_unknown_type_rejected(self, make_item):
        item = make_item(initial_quantity="10")
        with pytest.raises(ValidationError):
            _append(item, "gift", "1")

    def test_transfer_requires_transfer_stock(self, make_item):
        item = make_item(initial_quantity="10")
        with pytest.raises(ValidationError):
            _append(item, "transfer", "1")

    def test_more_than_two_decimals_rejected(self, make_item):
        item = make_item(initial_quantity="10")
        with pytest.raises(ValidationError):
            _append(item, "receipt", "1.005")

    def test_initial_stock_only_on_empty_history(self, make_item):
        item = make_item(initial_quantity="10")
        with pytest.raises(InvalidOperationError):
            _append(item, "initial_stock", "5")

    def test_initial_stock_on_fresh_item(self, make_item):
        item = make_item()
        row = _append(item, "initial_stock", "8")
        assert row.balance_after == Decimal("8")


class TestProjection:
    """Appends keep on-hand, available and balance_after consistent."""

    def test_balance_after_chain(self, db_session, make_item):
        item = make_item(initial_quantity="10")
        _append(item, "receipt", "5", unit_cost="10.00")
        _append(item, "issue", "-3", job_id="JOB-9")
        _append(item, "adjustment", "-2")
        _append(item, "return", "1")

        rows = (
            db_session.query(InventoryTransaction)
            .filter_by(item_id=item.id)
            .order_by(InventoryTransaction.id)
            .all()
        )
        assert [r.balance_after for r in rows] == [
            Decimal("10"), Decimal("15"), Decimal("12"), Decimal("10"), Decimal("11"),
        ]

        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.quantity_on_hand == Decimal("11")
        assert refreshed.quantity_available == Decimal("11")
        assert ledger_service.verify_item_projection(refreshed)["ok"] is True

    def test_transaction_numbers_are_sequential(self, make_item):
        item = make_item(initial_quantity="10")
        first = _append(item, "receipt", "1")
        second = _append(item, "receipt", "1")

        year = utcnow().year
        assert first.transaction_number.startswith(f"TXN-{year}-")
        assert int(second.transaction_number.rsplit("-", 1)[1]) == \
            int(first.transaction_number.rsplit("-", 1)[1]) + 1

    def test_location_defaults_to_primary(self, make_item, warehouse):
        item = make_item(initial_quantity="10")
        row = _append(item, "receipt", "1")
        assert row.location_id == warehouse.id

    def test_receipt_sets_last_restocked(self, make_item):
        item = make_item()
        _append(item, "receipt", "4")
        refreshed = db.session.get(InventoryItem, item.id)
        assert refreshed.last_restocked_date is not None

    def test_status_follows_on_hand(self, make_item):
        item = make_item(initial_quantity="10", reorder_level="4")
        _append(item, "issue", "-6")
        assert db.session.get(InventoryItem, item.id).status == "low_stock"
        _append(item, "issue", "-4")
        assert db.session.get(InventoryItem, item.id).status == "out_of_stock"

    def test_ledger_appended_signal(self, make_item):
        item = make_item(initial_quantity="10")
        received = []

        def _listener(sender, transactions):
            received.append((sender.id, [t.transaction_type for t in transactions]))

        ledger_appended.connect(_listener)
        try:
            _append(item, "issue", "-1")
        finally:
            ledger_appended.disconnect(_listener)

        assert received == [(item.id, ["issue"])]

    def test_cross_org_item_not_found(self, make_item):
        item = make_item(initial_quantity="10")
        with pytest.raises(NotFoundError):
            ledger_service.append_transaction(
                org_id=OTHER_ORG_ID, item_id=item.id, transaction_type="issue", quantity="-1",
            )


class TestInsufficientStock:
    """Outflows cannot exceed available stock."""

    def test_issue_beyond_available_rejected(self, db_session, make_item):
        item = make_item(initial_quantity="5")
        with pytest.raises(InsufficientStockError):
            _append(item, "issue", "-6")

        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.quantity_on_hand == Decimal("5")
        assert db_session.query(InventoryTransaction).filter_by(item_id=item.id).count() == 1

    def test_allocated_stock_not_available_for_issue(self, make_item):
        item = make_item(initial_quantity="10")
        allocation_service.create_allocation(org_id=ORG_ID, item_id=item.id, quantity="8", job_id="JOB-1")

        with pytest.raises(InsufficientStockError):
            _append(item, "issue", "-3")

    def test_clamp_disabled_by_default(self, make_item):
        item = make_item(initial_quantity="5")
        with pytest.raises(InsufficientStockError):
            _append(item, "write_off", "-8")

    def test_clamp_limits_corrections_to_available(self, app, db_session, make_item):
        app.config["INVENTORY_CLAMP_CORRECTIONS_TO_ZERO"] = True
        item = make_item(initial_quantity="5")

        row = _append(item, "adjustment", "-8")
        assert row.quantity == Decimal("-5")
        assert row.balance_after == Decimal("0")
        assert db_session.get(InventoryItem, item.id).quantity_on_hand == Decimal("0")

    def test_clamp_never_applies_to_issues(self, app, make_item):
        app.config["INVENTORY_CLAMP_CORRECTIONS_TO_ZERO"] = True
        item = make_item(initial_quantity="5")
        with pytest.raises(InsufficientStockError):
            _append(item, "issue", "-8")


class TestCosting:
    """Moving average cost and purchase price tracking."""

    def test_receipt_updates_average_cost(self, db_session, make_item):
        item = make_item(initial_quantity="10", unit_cost="10.00")
        _append(item, "receipt", "10", unit_cost="20.00")

        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.average_cost == Decimal("15.0000")
        assert refreshed.last_purchase_price == Decimal("20.0000")

    def test_issue_uses_average_cost(self, make_item):
        item = make_item(initial_quantity="10", unit_cost="10.00")
        _append(item, "receipt", "10", unit_cost="20.00")
        row = _append(item, "issue", "-2")

        assert row.unit_cost == Decimal("15.0000")
        assert row.total_cost == Decimal("30.00")


class TestTrackedItems:
    """Batch / serial data."""

    def test_batch_on_untracked_item_rejected(self, make_item):
        item = make_item(initial_quantity="5")
        with pytest.raises(ValidationError):
            _append(item, "receipt", "1", batch_number="B-1")

    def test_batch_receipt_on_tracked_item(self, make_item):
        item = make_item(track_by_batch=True)
        row = _append(item, "receipt", "3", batch_number="B-1", expiration_date="2030-01-31")

        assert row.batch_number == "B-1"
        assert row.expiration_date == date(2030, 1, 31)


class TestTransfers:
    """Stock moves between locations without changing on-hand."""

    def test_transfer_writes_paired_rows(self, db_session, make_item, warehouse, truck):
        item = make_item(initial_quantity="10")

        outbound, inbound = ledger_service.transfer_stock(
            org_id=ORG_ID,
            item_id=item.id,
            quantity="4",
            from_location_id=warehouse.id,
            to_location_id=truck.id,
            performed_by=7,
        )

        assert outbound.transfer_group == inbound.transfer_group
        assert outbound.quantity == Decimal("-4")
        assert inbound.quantity == Decimal("4")
        assert inbound.balance_after == Decimal("10")

        refreshed = db_session.get(InventoryItem, item.id)
        assert refreshed.quantity_on_hand == Decimal("10")

        balances = {b["location_id"]: b["quantity"] for b in ledger_service.get_location_balances(ORG_ID, item.id)}
        assert balances == {warehouse.id: "6.00", truck.id: "4.00"}
        assert ledger_service.verify_item_projection(refreshed)["ok"] is True

    def test_transfer_limited_by_source_balance(self, make_item, warehouse, truck):
        item = make_item(initial_quantity="10")
        with pytest.raises(InsufficientStockError):
            ledger_service.transfer_stock(
                org_id=ORG_ID, item_id=item.id, quantity="3",
                from_location_id=truck.id, to_location_id=warehouse.id,
            )

    def test_transfer_to_same_location_rejected(self, make_item, warehouse):
        item = make_item(initial_quantity="10")
        with pytest.raises(ValidationError):
            ledger_service.transfer_stock(
                org_id=ORG_ID, item_id=item.id, quantity="1",
                from_location_id=warehouse.id, to_location_id=warehouse.id,
            )

    def test_transfer_to_unknown_location(self, make_item, warehouse):
        item = make_item(initial_quantity="10")
        with pytest.raises(NotFoundError):
            ledger_service.transfer_stock(
                org_id=ORG_ID, item_id=item.id, quantity="1",
                from_location_id=warehouse.id, to_location_id=99999,
            )


class TestVerification:
    """Replaying the ledger against the cached projection."""

    def test_clean_ledger_verifies(self, make_item):
        make_item(initial_quantity="10")
        make_item(initial_quantity="3")

        report = ledger_service.verify_ledger(org_id=ORG_ID, batch_size=1)
        assert report["items_checked"] == 2
        assert report["mismatched_items"] == 0

    def test_tampered_cache_is_reported(self, db_session, make_item):
        item = make_item(initial_quantity="10")
        db_session.query(InventoryItem).filter_by(id=item.id).update(
            {"quantity_on_hand": Decimal("12"), "quantity_available": Decimal("12")},
            synchronize_session=False,
        )
        db_session.commit()

        report = ledger_service.verify_ledger(org_id=ORG_ID)
        assert report["mismatched_items"] == 1
        checks = {m["check"] for m in report["mismatches"][0]["mismatches"]}
        assert "quantity_on_hand" in checks
