# Overview: Flask CLI command group for schema bootstrap, ledger audit and number allocation.

# backend/posting_engine/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to posting_engine (PowerShell: $env:FLASK_APP="posting_engine").
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db [--drop --yes]
#   Create all tables (optionally dropping them first; deletes all data).
# - python -m flask ledger audit
#   Check invoice balances, refund bounds, stock levels and payment details. Exits 1 on violations.
# - python -m flask ledger next-number REC
#   Allocate and print the next reference number for a prefix.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.audit_service import check_invariants
from .services.numbering_service import NumberingError, VALID_PREFIXES, next_reference_number


@click.group('ledger')
def ledger_group():
    """Posting engine maintenance commands."""


@ledger_group.command('init-db')
@click.option('--drop', is_flag=True, help='Drop existing tables first')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def init_db(drop, yes):
    """Create the schema."""
    if drop:
        if not yes:
            click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)
        click.echo("DELETE  Dropping all tables...")
        db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Schema ready")


@ledger_group.command('audit')
@with_appcontext
def audit():
    """Report ledger inconsistencies."""
    violations = check_invariants()
    if not violations:
        click.echo("PASS No violations found")
        return

    for violation in violations:
        click.echo(f"FAIL [{violation.check}] {violation.reference}: {violation.message}")
    raise SystemExit(1)


@ledger_group.command('next-number')
@click.argument('prefix', type=click.Choice(VALID_PREFIXES, case_sensitive=False))
@with_appcontext
def next_number(prefix):
    """Allocate the next reference number for PREFIX."""
    try:
        number = next_reference_number(prefix.upper())
        db.session.commit()
    except NumberingError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(number)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)
