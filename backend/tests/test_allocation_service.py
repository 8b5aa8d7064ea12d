# Overview: Pytest coverage for job/bid allocations.

"""
Allocation Engine Tests

LIFECYCLE UNDER TEST:
allocated -> issued -> partially_used -> fully_used / returned
allocated -> cancelled
"""

from decimal import Decimal

import pytest

from fieldstock.errors import InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError
from fieldstock.extensions import db
from fieldstock.models import InventoryItem, InventoryTransaction
from fieldstock.services import allocation_service, ledger_service


ORG_ID = 1
OTHER_ORG_ID = 2


def _item(item_id):
    return db.session.get(InventoryItem, item_id)


@pytest.fixture
def stocked_item(make_item):
    return make_item("WIRE-12", initial_quantity="20")


def _allocate(item, quantity="5", **kwargs):
    kwargs.setdefault("job_id", "JOB-100")
    return allocation_service.create_allocation(
        org_id=ORG_ID, item_id=item.id, quantity=quantity, allocated_by=7, **kwargs
    )


class TestCreateAllocation:
    """Reserving stock."""

    def test_reserve_moves_available_to_allocated(self, stocked_item):
        allocation = _allocate(stocked_item, "5")

        assert allocation.status == "allocated"
        item = _item(stocked_item.id)
        assert item.quantity_on_hand == Decimal("20")
        assert item.quantity_allocated == Decimal("5")
        assert item.quantity_available == Decimal("15")

    def test_no_ledger_row_on_reserve(self, db_session, stocked_item):
        _allocate(stocked_item)
        assert db_session.query(InventoryTransaction).filter_by(item_id=stocked_item.id).count() == 1

    def test_bid_allocation(self, stocked_item):
        allocation = _allocate(stocked_item, job_id=None, bid_id="BID-7")
        assert allocation.bid_id == "BID-7"
        assert allocation.job_id is None

    @pytest.mark.parametrize("job_id,bid_id", [(None, None), ("JOB-1", "BID-1"), ("", "")])
    def test_exactly_one_target(self, stocked_item, job_id, bid_id):
        with pytest.raises(ValidationError):
            allocation_service.create_allocation(
                org_id=ORG_ID, item_id=stocked_item.id, quantity="1", job_id=job_id, bid_id=bid_id,
            )

    def test_cannot_exceed_available(self, stocked_item):
        _allocate(stocked_item, "15")
        with pytest.raises(InsufficientStockError):
            _allocate(stocked_item, "6")

    def test_non_positive_quantity_rejected(self, stocked_item):
        with pytest.raises(ValidationError):
            _allocate(stocked_item, "0")

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            allocation_service.create_allocation(org_id=ORG_ID, item_id=99999, quantity="1", job_id="J")


class TestIssueAndUsage:
    """Issuing to the field, recording usage and returns."""

    def test_issue_consumes_reservation(self, db_session, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation = allocation_service.issue_allocation(ORG_ID, allocation.id, performed_by=7)

        assert allocation.status == "issued"
        item = _item(stocked_item.id)
        assert item.quantity_on_hand == Decimal("15")
        assert item.quantity_allocated == Decimal("0")
        assert item.quantity_available == Decimal("15")

        row = (
            db_session.query(InventoryTransaction)
            .filter_by(item_id=stocked_item.id, transaction_type="issue")
            .one()
        )
        assert row.quantity == Decimal("-5")
        assert row.allocation_id == allocation.id
        assert row.job_id == "JOB-100"

    def test_issue_twice_rejected(self, stocked_item):
        allocation = _allocate(stocked_item)
        allocation_service.issue_allocation(ORG_ID, allocation.id)
        with pytest.raises(InvalidTransitionError):
            allocation_service.issue_allocation(ORG_ID, allocation.id)

    def test_usage_then_full_use(self, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation_service.issue_allocation(ORG_ID, allocation.id)

        allocation = allocation_service.record_usage(ORG_ID, allocation.id, "3")
        assert allocation.status == "partially_used"
        assert allocation.quantity_outstanding == Decimal("2")

        allocation = allocation_service.record_usage(ORG_ID, allocation.id, "2")
        assert allocation.status == "fully_used"

    def test_usage_beyond_outstanding_rejected(self, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation_service.issue_allocation(ORG_ID, allocation.id)
        with pytest.raises(InvalidTransitionError):
            allocation_service.record_usage(ORG_ID, allocation.id, "6")

    def test_usage_before_issue_rejected(self, stocked_item):
        allocation = _allocate(stocked_item)
        with pytest.raises(InvalidTransitionError):
            allocation_service.record_usage(ORG_ID, allocation.id, "1")

    def test_return_restores_stock(self, db_session, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation_service.issue_allocation(ORG_ID, allocation.id)
        allocation_service.record_usage(ORG_ID, allocation.id, "3")

        allocation = allocation_service.return_allocation(ORG_ID, allocation.id, "2", performed_by=7)
        assert allocation.status == "returned"
        assert allocation.quantity_returned == Decimal("2")
        assert _item(stocked_item.id).quantity_on_hand == Decimal("17")

        row = (
            db_session.query(InventoryTransaction)
            .filter_by(item_id=stocked_item.id, transaction_type="return")
            .one()
        )
        assert row.quantity == Decimal("2")
        assert row.job_id == "JOB-100"

    def test_partial_return_leaves_outstanding(self, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation_service.issue_allocation(ORG_ID, allocation.id)

        allocation = allocation_service.return_allocation(ORG_ID, allocation.id, "1")
        assert allocation.status == "partially_used"
        assert allocation.quantity_outstanding == Decimal("4")

    def test_over_return_rejected(self, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation_service.issue_allocation(ORG_ID, allocation.id)
        allocation_service.record_usage(ORG_ID, allocation.id, "4")

        with pytest.raises(InvalidTransitionError):
            allocation_service.return_allocation(ORG_ID, allocation.id, "2")
        assert _item(stocked_item.id).quantity_on_hand == Decimal("15")

    def test_projection_verifies_after_lifecycle(self, stocked_item):
        first = _allocate(stocked_item, "5")
        _allocate(stocked_item, "3", job_id="JOB-200")
        allocation_service.issue_allocation(ORG_ID, first.id)
        allocation_service.return_allocation(ORG_ID, first.id, "1")

        report = ledger_service.verify_item_projection(_item(stocked_item.id))
        assert report["ok"] is True, report["mismatches"]


class TestCancelAllocation:
    """Releasing reservations before issue."""

    def test_cancel_releases_reservation(self, stocked_item):
        allocation = _allocate(stocked_item, "5")
        allocation = allocation_service.cancel_allocation(ORG_ID, allocation.id)

        assert allocation.status == "cancelled"
        assert allocation.cancelled_at is not None
        item = _item(stocked_item.id)
        assert item.quantity_allocated == Decimal("0")
        assert item.quantity_available == Decimal("20")

    def test_double_cancel_rejected(self, stocked_item):
        allocation = _allocate(stocked_item)
        allocation_service.cancel_allocation(ORG_ID, allocation.id)
        with pytest.raises(InvalidTransitionError):
            allocation_service.cancel_allocation(ORG_ID, allocation.id)

    def test_cancel_after_issue_rejected(self, stocked_item):
        allocation = _allocate(stocked_item)
        allocation_service.issue_allocation(ORG_ID, allocation.id)
        with pytest.raises(InvalidTransitionError):
            allocation_service.cancel_allocation(ORG_ID, allocation.id)

    def test_cross_org_cancel_not_found(self, stocked_item):
        allocation = _allocate(stocked_item)
        with pytest.raises(NotFoundError):
            allocation_service.cancel_allocation(OTHER_ORG_ID, allocation.id)


class TestListAllocations:

    def test_filter_by_job(self, stocked_item):
        _allocate(stocked_item, "1", job_id="JOB-A")
        _allocate(stocked_item, "1", job_id="JOB-B")

        rows, total = allocation_service.list_allocations(ORG_ID, job_id="JOB-A")
        assert total == 1
        assert rows[0].job_id == "JOB-A"

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            allocation_service.list_allocations(ORG_ID, status="lost")
