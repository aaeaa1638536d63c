# Overview: Flask CLI command groups for database bootstrap, sale inspection and ledger repair.

# backend/bookkeeper/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sales:
# - python -m flask sales list [--status "Partially Paid"]
#   List sales newest first with totals and payment status.
# - python -m flask sales recompute [--sale-id 12]
#   Rebuild derived totals/status from line items and payments (safe to re-run).
# - python -m flask sales delete 12 --yes
#   Delete a sale with its line items and payments.
#
# Maintenance:
# - python -m flask maintenance orphans [--purge]
#   Report (or delete) line items and payments whose sale no longer exists.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .gateway import PAYMENTS, SALE_ITEMS, SALES
from .services import maintenance_service
from .services.payment_service import PAYMENT_STATUSES


def _ledger():
    return current_app.extensions["sale_ledger"]


def _money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}{abs(cents) // 100}.{abs(cents) % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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


@click.group('sales')
def sales_group():
    """Sale inspection and repair."""


@sales_group.command('list')
@click.option('--status', type=click.Choice(PAYMENT_STATUSES), default=None, help='Filter by payment status')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_sales_cli(status, limit):
    """List sales newest first."""
    result = _ledger().list_sales(page=1, per_page=limit, payment_status=status)
    if not result["items"]:
        click.echo("No sales found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<6} {'Date':<12} {'Customer':<28} {'Items':<6} {'Final':>12} {'Paid':>12}  Status")
    click.echo("="*90)
    for sale in result["items"]:
        click.echo(
            f"{sale['id']:<6} {sale['sale_date'].isoformat():<12} {sale['customer_name'][:27]:<28} "
            f"{sale['item_count']:<6} {_money(sale['final_amount_cents']):>12} "
            f"{_money(sale['amount_paid_cents']):>12}  {sale['payment_status']}"
        )
    click.echo("="*90)
    click.echo(f"Showing {result['count']} of {result['pagination']['total']} sale(s)\n")


@sales_group.command('recompute')
@click.option('--sale-id', type=int, default=None, help='Only this sale (default: every sale)')
@with_appcontext
def recompute_cli(sale_id):
    """
    Rebuild subtotal, final amount, item count, amount paid and payment
    status from the stored line items and payments.

    Use after an interrupted multi-step write; running it twice changes nothing.
    """
    ledger = _ledger()
    if sale_id is not None:
        try:
            sale = ledger.recompute_totals(sale_id)
        except LedgerError as e:
            raise click.ClickException(e.message)
        click.echo(
            f"PASS Sale {sale['id']}: final {_money(sale['final_amount_cents'])}, "
            f"paid {_money(sale['amount_paid_cents'])}, {sale['payment_status']}"
        )
        return

    result = maintenance_service.recompute_all(ledger)
    click.echo(f"PASS Checked {result['checked']} sale(s), repaired {len(result['repaired'])}.")
    for repaired_id in result["repaired"]:
        click.echo(f"  - sale {repaired_id}")


@sales_group.command('delete')
@click.argument('sale_id', type=int)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_sale_cli(sale_id, yes):
    """Delete a sale together with its line items and payments."""
    if not yes:
        click.confirm(f"WARN Delete sale {sale_id} and all of its line items and payments?", abort=True)
    try:
        result = _ledger().delete_sale(sale_id)
    except LedgerError as e:
        if e.details:
            click.echo(f"FAIL {e.message} {e.details}", err=True)
        raise click.ClickException(e.message)
    click.echo(
        f"PASS Deleted sale {result['sale_id']} "
        f"({result['deleted_line_items']} line items, {result['deleted_payments']} payments)"
    )


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('orphans')
@click.option('--purge', is_flag=True, help='Delete the orphaned records')
@with_appcontext
def orphans_cli(purge):
    """
    Find line items and payments that reference a missing sale.

    These are left behind when a cascade delete is interrupted.
    """
    gateway = _ledger().gateway
    orphans = maintenance_service.find_orphans(gateway)
    click.echo(f"Orphaned line items: {len(orphans[SALE_ITEMS])} {orphans[SALE_ITEMS]}")
    click.echo(f"Orphaned payments:   {len(orphans[PAYMENTS])} {orphans[PAYMENTS]}")

    if purge:
        deleted = maintenance_service.purge_orphans(gateway)
        click.echo(
            f"PASS Purged {deleted[SALE_ITEMS]} line items and {deleted[PAYMENTS]} payments "
            f"with no {SALES} header."
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(maintenance_group)
