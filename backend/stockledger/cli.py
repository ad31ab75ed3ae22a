# Overview: Flask CLI command groups for bootstrap and ledger inspection.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; existing data is kept).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger inspection (read-only):
# - python -m flask ledger balances [--outstanding-only]
#   Credit balance per customer.
# - python -m flask ledger low-stock
#   Active products at or below their low-stock threshold.
# - python -m flask ledger returnable
#   Quantity still returnable per (customer, product).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import reporting_service
from .services.aggregate_service import fetch_customer_balances


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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


@click.group('ledger')
def ledger_group():
    """Read-only ledger inspection commands."""


@ledger_group.command('balances')
@click.option('--outstanding-only', is_flag=True, help='Only customers who owe money')
@with_appcontext
def balances(outstanding_only):
    """Credit balance per customer."""
    if outstanding_only:
        rows = reporting_service.outstanding_customers()
    else:
        rows = fetch_customer_balances()

    if not rows:
        click.echo("No customers found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Phone':<16} {'Charged':>10} {'Paid':>10} {'Outstanding':>11}")
    click.echo("="*80)

    for row in rows:
        click.echo(
            f"{row['customer_id']:<5} {row['customer_name']:<25} {row['customer_phone'] or '-':<16} "
            f"{row['total_credit']:>10.2f} {row['total_paid']:>10.2f} {row['outstanding']:>11.2f}"
        )

    click.echo("="*80 + "\n")


@ledger_group.command('low-stock')
@with_appcontext
def low_stock():
    """Active products at or below their low-stock threshold."""
    rows = reporting_service.low_stock_products()

    if not rows:
        click.echo("No low-stock products.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Qty':>10} {'Threshold':>10}")
    click.echo("="*60)

    for p in rows:
        click.echo(f"{p['id']:<5} {p['name']:<30} {p['qty']:>10g} {p['low_stock_threshold']:>10g}")

    click.echo("="*60 + "\n")


@ledger_group.command('returnable')
@with_appcontext
def returnable():
    """Quantity still returnable per (customer, product)."""
    rows = reporting_service.returnable_positions()

    if not rows:
        click.echo("Nothing to return.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Customer':<25} {'Product':<30} {'Returnable':>10} {'Sales':>6}")
    click.echo("="*80)

    for row in rows:
        click.echo(
            f"{row['customer_name']:<25} {row['product_name']:<30} "
            f"{row['outstanding_qty']:>10g} {len(row['sales']):>6}"
        )

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
