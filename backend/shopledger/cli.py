# Overview: Flask CLI command groups for bootstrap, inspection, and reports.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the shop settings row.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask products list [--search "soap"]
#   List products with stock and prices (cents).
# - python -m flask products add --sku SKU-1 --name "Soap" --quantity 10 --cost 6000 --price 10000
#   Add a product.
#
# Reports:
# - python -m flask reports show daily
#   Print the sales / inventory / cash summary for daily | monthly | all-time.

import json

import click
from flask.cli import with_appcontext

from .errors import ShopledgerError
from .extensions import db
from .services import products_service, reporting_service
from .services.settings_service import ensure_settings


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the shop: create any missing tables and the settings row.

    Safe to run repeatedly.
    """
    click.echo("START Initializing shop...")

    db.create_all()
    click.echo("PASS Tables ready")

    settings = ensure_settings()
    db.session.commit()
    click.echo(
        f"PASS Shop: {settings.shop_name} "
        f"(last bill {settings.last_bill_number}, last credit note {settings.last_credit_note_number})"
    )


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('products')
def products_group():
    """Catalog inspection and bootstrap."""


@products_group.command('list')
@click.option('--search', default=None, help='Filter by name or SKU')
@with_appcontext
def list_products(search):
    """List all products."""
    result = products_service.list_products(search=search)
    if not result["items"]:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'SKU':<16} {'Name':<30} {'Qty':>6} {'Cost':>12} {'Price':>12}")
    click.echo("=" * 90)
    for p in result["items"]:
        click.echo(
            f"{p['id']:<5} {p['sku']:<16} {p['name'][:30]:<30} {p['quantity']:>6} "
            f"{p['cost_price_cents']:>12} {p['selling_price_cents']:>12}"
        )
    click.echo("=" * 90)
    click.echo(f"Total: {result['count']} products\n")


@products_group.command('add')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--quantity', type=int, default=0, show_default=True)
@click.option('--cost', 'cost_price_cents', type=int, default=0, show_default=True, help='Cost price in cents')
@click.option('--price', 'selling_price_cents', type=int, default=0, show_default=True, help='Selling price in cents')
@with_appcontext
def add_product(sku, name, quantity, cost_price_cents, selling_price_cents):
    """Add a product to the catalog."""
    try:
        created = products_service.create_product(patch={
            "sku": sku.strip(),
            "name": name.strip(),
            "quantity": quantity,
            "cost_price_cents": cost_price_cents,
            "selling_price_cents": selling_price_cents,
        })
    except ShopledgerError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created product {created['sku']} (ID: {created['id']}, qty {created['quantity']})")


@click.group('reports')
def reports_group():
    """Financial reports."""


@reports_group.command('show')
@click.argument('period', type=click.Choice(reporting_service.REPORT_PERIODS))
@click.option('--json', 'as_json', is_flag=True, help='Print the full report as JSON')
@with_appcontext
def show_report(period, as_json):
    """Print the report for a period."""
    report = reporting_service.build_report(period)
    if as_json:
        click.echo(json.dumps(report, indent=2))
        return

    sales = report["sales"]
    inventory = report["inventory"]
    cash = report["cash"]
    click.echo(f"\nREPORT {period} ({report['date_range']['start']} .. {report['date_range']['end']})")
    click.echo(f"  Bills:               {sales['total_bills']}")
    click.echo(f"  Gross revenue:       {sales['gross_revenue_cents']}")
    click.echo(f"  Discounts:           {sales['total_discounts_cents']}")
    click.echo(f"  Cost of goods sold:  {sales['total_cost_of_goods_sold_cents']}")
    click.echo(f"  Profit:              {sales['total_profit_cents']}")
    click.echo(f"  Credit notes:        {sales['total_credit_note_amount_cents']}")
    click.echo(f"  Net revenue:         {sales['net_revenue_cents']}")
    for payment_type, total in sales["payment_totals"].items():
        click.echo(f"    {payment_type:<8} {total}")
    click.echo(f"  Items sold:          {inventory['total_items_sold']}")
    click.echo(f"  Items remaining:     {inventory['items_remaining']}")
    click.echo(f"  Inventory value:     {inventory['total_inventory_value_cents']}")
    click.echo(f"  Cash in hand:        {cash['cash_in_hand_cents']}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(reports_group)
