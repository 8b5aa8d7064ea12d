# Overview: Pytest coverage for stock alert rules and lifecycle.

"""
Stock Alert Monitor Tests

Covers:
1. Rules: out_of_stock, low_stock, overstock, expiring lots
2. One open alert per (item, type[, lot])
3. Lots only report stock the item still holds, first expiry first out
4. Ledger-triggered evaluation and the periodic sweep
5. Acknowledge / resolve lifecycle
"""

import pytest

from fieldstock.errors import InvalidTransitionError, NotFoundError, ValidationError
from fieldstock.models import InventoryStockAlert
from fieldstock.services import alert_service, allocation_service, ledger_service
from fieldstock.signals import alert_raised
from fieldstock.time_utils import days_from_today


ORG_ID = 1
OTHER_ORG_ID = 2


def _open_alerts(db_session, item_id, alert_type=None):
    query = db_session.query(InventoryStockAlert).filter_by(item_id=item_id, is_resolved=False)
    if alert_type:
        query = query.filter_by(alert_type=alert_type)
    return query.all()


def _issue(item, quantity):
    return ledger_service.append_transaction(
        org_id=ORG_ID, item_id=item.id, transaction_type="issue", quantity=quantity,
    )


class TestRules:
    """Alert conditions."""

    def test_low_stock_raised_by_ledger(self, db_session, make_item):
        item = make_item(initial_quantity="10", reorder_level="5")
        assert _open_alerts(db_session, item.id) == []

        _issue(item, "-6")
        alerts = _open_alerts(db_session, item.id, "low_stock")
        assert len(alerts) == 1
        assert alerts[0].severity == "warning"

    def test_out_of_stock_is_critical(self, db_session, make_item):
        item = make_item(initial_quantity="3", reorder_level="1")
        _issue(item, "-3")

        alerts = _open_alerts(db_session, item.id, "out_of_stock")
        assert len(alerts) == 1
        assert alerts[0].severity == "critical"

    def test_overstock_is_info(self, db_session, make_item):
        item = make_item(initial_quantity="50", max_stock_level="40")
        alerts = _open_alerts(db_session, item.id, "overstock")
        assert len(alerts) == 1
        assert alerts[0].severity == "info"

    def test_no_duplicate_open_alerts(self, db_session, make_item):
        item = make_item(initial_quantity="10", reorder_level="5")
        _issue(item, "-6")
        _issue(item, "-1")
        _issue(item, "-1")

        assert len(_open_alerts(db_session, item.id, "low_stock")) == 1

    def test_condition_clearing_keeps_alert_open(self, db_session, make_item):
        item = make_item(initial_quantity="10", reorder_level="5")
        _issue(item, "-6")
        ledger_service.append_transaction(
            org_id=ORG_ID, item_id=item.id, transaction_type="receipt", quantity="20",
        )

        assert len(_open_alerts(db_session, item.id, "low_stock")) == 1

    def test_resolved_alert_can_recur(self, db_session, make_item):
        item = make_item(initial_quantity="10", reorder_level="5")
        _issue(item, "-6")
        alert = _open_alerts(db_session, item.id, "low_stock")[0]
        alert_service.resolve_alert(ORG_ID, alert.id, user_id=7)

        _issue(item, "-1")
        assert len(_open_alerts(db_session, item.id, "low_stock")) == 1

    def test_ledger_evaluation_can_be_disabled(self, app, db_session, make_item):
        app.config["INVENTORY_ALERTS_ON_LEDGER"] = False
        item = make_item(initial_quantity="3", reorder_level="5")
        assert _open_alerts(db_session, item.id) == []

    def test_alert_raised_signal(self, make_item):
        received = []

        def _listener(sender, alert):
            received.append(alert.alert_type)

        alert_raised.connect(_listener)
        try:
            make_item(initial_quantity="2", reorder_level="5")
        finally:
            alert_raised.disconnect(_listener)

        assert received == ["low_stock"]


class TestExpiringLots:
    """Batch-tracked stock approaching its expiration date."""

    def _receive_lot(self, item, lot, offset_days, quantity="5"):
        expires = days_from_today(offset_days).isoformat()
        return ledger_service.append_transaction(
            org_id=ORG_ID,
            item_id=item.id,
            transaction_type="receipt",
            quantity=quantity,
            batch_number=lot,
            expiration_date=expires,
        )

    def test_lot_inside_horizon_warns(self, db_session, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-A", 10)
        self._receive_lot(item, "LOT-B", 90)

        alerts = _open_alerts(db_session, item.id, "expiring")
        assert [a.batch_number for a in alerts] == ["LOT-A"]
        assert alerts[0].severity == "warning"

    def test_expired_lot_is_critical(self, db_session, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-OLD", -2)

        alerts = _open_alerts(db_session, item.id, "expiring")
        assert len(alerts) == 1
        assert alerts[0].severity == "critical"

    def test_consumed_lot_not_reported(self, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-C", 5, quantity="2")
        ledger_service.append_transaction(
            org_id=ORG_ID, item_id=item.id, transaction_type="issue", quantity="-2", batch_number="LOT-C",
        )

        assert alert_service.expiring_lots(item) == []

    def test_one_alert_per_lot(self, db_session, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-D", 5)
        self._receive_lot(item, "LOT-D", 5)
        self._receive_lot(item, "LOT-E", 6)

        lots = sorted(a.batch_number for a in _open_alerts(db_session, item.id, "expiring"))
        assert lots == ["LOT-D", "LOT-E"]

    def test_lot_issued_through_allocation_not_reported(self, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-X", 5, quantity="5")
        allocation = allocation_service.create_allocation(
            org_id=ORG_ID, item_id=item.id, quantity="5", job_id="JOB-9",
        )
        allocation_service.issue_allocation(ORG_ID, allocation.id)

        assert item.quantity_on_hand == 0
        assert alert_service.expiring_lots(item) == []

    def test_unbatched_issue_consumes_earliest_lot(self, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-EARLY", 3, quantity="5")
        self._receive_lot(item, "LOT-LATE", 20, quantity="5")
        _issue(item, "-7")

        lots = alert_service.expiring_lots(item)
        assert [(lot["lot"], lot["remaining"]) for lot in lots] == [("LOT-LATE", 3)]

        _issue(item, "-1")
        lots = alert_service.expiring_lots(item)
        assert [(lot["lot"], lot["remaining"]) for lot in lots] == [("LOT-LATE", 2)]

    def test_partially_consumed_lot_reports_its_share(self, make_item):
        item = make_item(track_by_batch=True)
        self._receive_lot(item, "LOT-EARLY", 3, quantity="5")
        self._receive_lot(item, "LOT-LATE", 20, quantity="5")
        _issue(item, "-2")

        lots = {lot["lot"]: lot["remaining"] for lot in alert_service.expiring_lots(item)}
        assert lots == {"LOT-EARLY": 3, "LOT-LATE": 5}


class TestSweep:
    """Periodic alert check."""

    def test_sweep_catches_items_without_ledger_activity(self, db_session, make_item):
        first = make_item(reorder_level="5")
        second = make_item(reorder_level="5")

        result = alert_service.run_alert_check(org_id=ORG_ID, batch_size=1)
        assert result["items_checked"] == 2
        assert result["alerts_created"] == 2
        assert len(_open_alerts(db_session, first.id, "out_of_stock")) == 1
        assert len(_open_alerts(db_session, second.id, "out_of_stock")) == 1

        again = alert_service.run_alert_check(org_id=ORG_ID)
        assert again["alerts_created"] == 0

    def test_sweep_skips_inactive_items(self, make_item):
        make_item(reorder_level="5", is_active=False)
        result = alert_service.run_alert_check(org_id=ORG_ID)
        assert result == {"items_checked": 0, "alerts_created": 0}


class TestLifecycle:
    """Acknowledge and resolve."""

    @pytest.fixture
    def alert(self, db_session, make_item):
        make_item(reorder_level="5")
        alert_service.run_alert_check(org_id=ORG_ID)
        return db_session.query(InventoryStockAlert).one()

    def test_acknowledge_then_resolve(self, alert):
        acked = alert_service.acknowledge_alert(ORG_ID, alert.id, user_id=7)
        assert acked.is_acknowledged is True
        assert acked.acknowledged_by == 7

        resolved = alert_service.resolve_alert(ORG_ID, alert.id, user_id=7, notes="Reordered")
        assert resolved.is_resolved is True
        assert resolved.resolution_notes == "Reordered"

    def test_resolve_without_acknowledge(self, alert):
        resolved = alert_service.resolve_alert(ORG_ID, alert.id)
        assert resolved.is_resolved is True
        assert resolved.is_acknowledged is False

    def test_double_acknowledge_rejected(self, alert):
        alert_service.acknowledge_alert(ORG_ID, alert.id)
        with pytest.raises(InvalidTransitionError):
            alert_service.acknowledge_alert(ORG_ID, alert.id)

    def test_resolved_alert_is_final(self, alert):
        alert_service.resolve_alert(ORG_ID, alert.id)
        with pytest.raises(InvalidTransitionError):
            alert_service.resolve_alert(ORG_ID, alert.id)
        with pytest.raises(InvalidTransitionError):
            alert_service.acknowledge_alert(ORG_ID, alert.id)

    def test_cross_org_not_found(self, alert):
        with pytest.raises(NotFoundError):
            alert_service.acknowledge_alert(OTHER_ORG_ID, alert.id)

    def test_list_filters(self, alert):
        alerts, total = alert_service.list_alerts(ORG_ID, severity="critical", is_resolved=False)
        assert total == 1

        with pytest.raises(ValidationError):
            alert_service.list_alerts(ORG_ID, alert_type="flood")
