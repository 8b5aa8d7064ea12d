# Overview: Pytest coverage for the maintenance CLI commands.

from decimal import Decimal

from fieldstock.models import Category, InventoryItem, InventoryStockAlert, UnitOfMeasure


class TestReferenceCommands:

    def test_seed(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["reference", "seed"])
        assert result.exit_code == 0, result.output
        assert "PASS Seeded 4 categories and 7 units of measure." in result.output
        assert db_session.query(Category).count() == 4
        assert db_session.query(UnitOfMeasure).count() == 7

        again = runner.invoke(args=["reference", "seed"])
        assert "PASS Seeded 0 categories and 0 units of measure." in again.output


class TestInventoryCommands:

    def test_check_alerts(self, app, db_session, make_item):
        make_item(reorder_level="5")
        runner = app.test_cli_runner()

        result = runner.invoke(args=["inventory", "check-alerts", "--org-id", "1"])
        assert result.exit_code == 0, result.output
        assert "created 1 alerts" in result.output
        assert db_session.query(InventoryStockAlert).count() == 1

    def test_verify_ledger_passes(self, app, make_item):
        make_item(initial_quantity="10")
        runner = app.test_cli_runner()

        result = runner.invoke(args=["inventory", "verify-ledger"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("PASS 1 items verified")

    def test_verify_ledger_reports_mismatch(self, app, db_session, make_item):
        item = make_item("DRIFT-1", initial_quantity="10")
        db_session.query(InventoryItem).filter_by(id=item.id).update(
            {"quantity_on_hand": Decimal("9"), "quantity_available": Decimal("9")},
            synchronize_session=False,
        )
        db_session.commit()

        runner = app.test_cli_runner()
        result = runner.invoke(args=["inventory", "verify-ledger", "--org-id", "1"])

        assert result.exit_code == 1
        assert "FAIL 1 of 1 items disagree" in result.output
        assert "DRIFT-1" in result.output
