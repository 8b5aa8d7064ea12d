# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/fieldstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reference data:
# - python -m flask reference seed
#   Insert default categories and units of measure (idempotent).
#
# Inventory maintenance:
# - python -m flask inventory check-alerts [--org-id 1]
#   Sweep items and raise missing stock alerts.
# - python -m flask inventory verify-ledger [--org-id 1]
#   Replay the ledger against cached item quantities; exits 1 on any mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import alert_service, ledger_service, reference_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask reference seed' to load defaults.")


@click.group('reference')
def reference_group():
    """Reference data commands."""


@reference_group.command('seed')
@with_appcontext
def seed_reference():
    """Insert default categories and units of measure."""
    created = reference_service.seed_defaults()
    click.echo(
        f"PASS Seeded {created['categories']} categories and {created['units']} units of measure."
    )


@click.group('inventory')
def inventory_group():
    """Inventory maintenance commands."""


@inventory_group.command('check-alerts')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def check_alerts(org_id):
    """Evaluate every active item and raise missing alerts."""
    result = alert_service.run_alert_check(org_id=org_id)
    click.echo(
        f"PASS Checked {result['items_checked']} items, created {result['alerts_created']} alerts."
    )


@inventory_group.command('verify-ledger')
@click.option('--org-id', type=int, default=None, help='Limit to one organization')
@with_appcontext
def verify_ledger(org_id):
    """
    Recompute item quantities from the ledger and compare with the cache.

    Exits with status 1 when any item disagrees.
    """
    report = ledger_service.verify_ledger(org_id=org_id)
    if not report["mismatched_items"]:
        click.echo(f"PASS {report['items_checked']} items verified, no mismatches.")
        return

    click.echo(
        f"FAIL {report['mismatched_items']} of {report['items_checked']} items disagree with the ledger:"
    )
    for entry in report["mismatches"]:
        for mismatch in entry["mismatches"]:
            click.echo(
                f"  - {entry['item_code']} (id {entry['item_id']}): {mismatch['check']} "
                f"expected={mismatch.get('expected')} actual={mismatch.get('actual')}"
            )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reference_group)
    app.cli.add_command(inventory_group)
