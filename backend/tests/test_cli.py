# Overview: Pytest coverage for the Flask CLI command groups.

import json

from shopledger.models import Product, ShopSettings


class TestSystemCommands:
    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init"])
        second = runner.invoke(args=["system", "init"])

        assert first.exit_code == 0
        assert "PASS Shop: Test Shop" in first.output
        assert second.exit_code == 0
        assert db_session.query(ShopSettings).count() == 1


class TestProductCommands:
    def test_add_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=[
            "products", "add", "--sku", "TEA-1", "--name", "Tea",
            "--quantity", "5", "--cost", "900", "--price", "1200",
        ])
        assert result.exit_code == 0
        assert "PASS Created product TEA-1" in result.output
        assert db_session.query(Product).filter_by(sku="TEA-1").one().quantity == 5

        listed = runner.invoke(args=["products", "list"])
        assert "TEA-1" in listed.output
        assert "Total: 1 products" in listed.output

    def test_duplicate_sku_fails(self, app, db_session, product):
        result = app.test_cli_runner().invoke(args=["products", "add", "--sku", "SKU-1", "--name", "Copy"])
        assert result.exit_code == 1
        assert "FAIL" in result.output

    def test_empty_catalog(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["products", "list"])
        assert "No products found." in result.output


class TestReportCommands:
    def test_json_report(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["reports", "show", "daily", "--json"])
        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["period"] == "daily"
        assert report["sales"]["total_bills"] == 0

    def test_rejects_unknown_period(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["reports", "show", "weekly"])
        assert result.exit_code != 0
