# Overview: Flask CLI command groups for bootstrap and stock maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory:
# - python -m flask inventory adjust PRD-1001 -5 --reason "Cycle count"
#   Manual stock adjustment through the ledger.
# - python -m flask inventory sync-serials PRD-1002
#   Reconcile a serialized product's stock with its available serials.
# - python -m flask inventory delete-product PRD-1001
#   Delete a product (ghosted if orders still reference it).
# - python -m flask inventory clear --yes
#   Remove every live product; referenced ones are ghosted first.
#
# Orders:
# - python -m flask orders status ORD-20260101120000-042 shipped
# - python -m flask orders delete ORD-20260101120000-042
# - python -m flask orders clear --yes
#
# Products:
# - python -m flask products import products.json
#   JSON file holding a list of product rows; prints per-row results.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import bulk_service, integrity_service, ledger_service, order_service, serial_service
from .services.import_service import import_products


def _fail(e: Exception) -> None:
    click.echo(f"FAIL {e}", err=True)
    details = getattr(e, "details", None)
    if details:
        click.echo(json.dumps(details, indent=2, default=str), err=True)
    raise SystemExit(1)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('inventory')
def inventory_group():
    """Stock ledger and product maintenance commands."""


@inventory_group.command('adjust')
@click.argument('product_id')
@click.argument('delta', type=int)
@click.option('--reason', required=True, help='Why the stock changed')
@with_appcontext
def adjust_cli(product_id, delta, reason):
    """Apply a signed stock change to a non-serialized product."""
    try:
        before = ledger_service.get_live_product(product_id).stock
        product = ledger_service.adjust_stock(product_id, delta, reason)
    except ValueError as e:
        _fail(e)
    click.echo(f"PASS {product.id}: {before} -> {product.stock}")


@inventory_group.command('sync-serials')
@click.argument('product_id')
@with_appcontext
def sync_serials_cli(product_id):
    """Set stock to the number of available serials."""
    try:
        product = serial_service.sync_stock_to_serials(product_id)
    except ValueError as e:
        _fail(e)
    click.echo(f"PASS {product.id}: stock {product.stock}")


@inventory_group.command('delete-product')
@click.argument('product_id')
@with_appcontext
def delete_product_cli(product_id):
    try:
        ghost_id = integrity_service.delete_product(product_id)
    except ValueError as e:
        _fail(e)
    if ghost_id:
        click.echo(f"PASS {product_id} replaced by {ghost_id} (still on orders)")
    else:
        click.echo(f"PASS {product_id} deleted")


@inventory_group.command('clear')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def clear_inventory_cli(yes):
    """Remove all live products and the stock ledger."""
    if not yes:
        click.confirm("WARN This deletes every product and stock adjustment. Continue?", abort=True)
    try:
        summary = bulk_service.clear_all_inventory()
    except ValueError as e:
        _fail(e)
    click.echo(json.dumps(summary, indent=2))


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('status')
@click.argument('order_id')
@click.argument('status', type=click.Choice(order_service.ORDER_STATUSES))
@with_appcontext
def order_status_cli(order_id, status):
    try:
        order = order_service.update_status(order_id, status)
    except ValueError as e:
        _fail(e)
    click.echo(f"PASS {order.id}: {order.status}")


@orders_group.command('delete')
@click.argument('order_id')
@with_appcontext
def delete_order_cli(order_id):
    """Delete an order without giving its stock back."""
    try:
        result = order_service.delete_order(order_id)
    except ValueError as e:
        _fail(e)
    click.echo(json.dumps(result, indent=2))


@orders_group.command('clear')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def clear_orders_cli(yes):
    if not yes:
        click.confirm("WARN This deletes every order. Continue?", abort=True)
    try:
        summary = bulk_service.clear_all_orders()
    except ValueError as e:
        _fail(e)
    click.echo(json.dumps(summary, indent=2))


@click.group('products')
def products_group():
    """Product catalog commands."""


@products_group.command('import')
@click.argument('path', type=click.File('r'))
@with_appcontext
def import_products_cli(path):
    """Import product rows from a JSON list."""
    try:
        rows = json.load(path)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}")
    try:
        result = import_products(rows)
    except ValueError as e:
        _fail(e)

    for r in result["results"]:
        if r["ok"]:
            click.echo(f"  row {r['row']}: PASS {r['product_id']}")
        else:
            click.echo(f"  row {r['row']}: FAIL {r['error']}")
    click.echo(f"Created {result['created']}, failed {result['failed']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(products_group)
