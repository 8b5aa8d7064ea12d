# Overview: Pytest coverage for dashboard and grouped stock statistics.

from decimal import Decimal

from fieldstock.services import reporting_service


ORG_ID = 1
OTHER_ORG_ID = 2


class TestDashboard:
    """Headline numbers."""

    def test_dashboard(self, make_item):
        make_item(initial_quantity="10", unit_cost="2.50", reorder_level="2")
        make_item(initial_quantity="1", unit_cost="4.00", reorder_level="5")
        make_item(unit_cost="1.00")

        summary = reporting_service.dashboard_summary(ORG_ID)
        assert summary["total_items"] == 3
        assert summary["active_items"] == 3
        assert summary["low_stock_items"] == 1
        assert summary["out_of_stock_items"] == 1
        assert Decimal(summary["inventory_value"]) == Decimal("29.00")
        assert summary["unresolved_alerts"] == 1
        assert summary["critical_alerts"] == 0

    def test_other_org_sees_nothing(self, make_item):
        make_item(initial_quantity="10")
        summary = reporting_service.dashboard_summary(OTHER_ORG_ID)
        assert summary["total_items"] == 0
        assert summary["inventory_value"] == "0.00"


class TestGroupedStats:

    def test_stats_by_category(self, make_item, category):
        make_item(initial_quantity="2", unit_cost="5.00", category_id=category.id)
        make_item(initial_quantity="1", unit_cost="3.00")

        rows = {r["category_id"]: r for r in reporting_service.stats_by_category(ORG_ID)}
        assert rows[category.id]["item_count"] == 1
        assert rows[category.id]["category_name"] == "Materials"
        assert rows[category.id]["inventory_value"] == "10.00"
        assert rows[None]["inventory_value"] == "3.00"

    def test_stats_by_location_and_status(self, make_item, truck, warehouse):
        make_item(initial_quantity="2")
        make_item(initial_quantity="3", primary_location_id=truck.id)

        by_location = {r["location_id"]: r["item_count"] for r in reporting_service.stats_by_location(ORG_ID)}
        assert by_location == {warehouse.id: 1, truck.id: 1}

        by_status = {r["status"]: r["item_count"] for r in reporting_service.stats_by_status(ORG_ID)}
        assert by_status == {"in_stock": 2}
