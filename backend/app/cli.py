# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email it.admin@example.com --password "secret123" --id-card 0012345678]
#   Idempotent bootstrap: creates tables and an IT-department administrator.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all accounts with department, status and whether an RFID card is registered.
# - python -m flask users create --first-name Budi --last-name Santoso --role Operator --department WAREHOUSE --email budi@example.com
#   Create an account (prompts if options are omitted).
#
# Goods receipts:
# - python -m flask receipts pending --older-than-minutes 10
#   List ledger rows still "Processing..." (the process died before the ERP answer was recorded).
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired and revoked session tokens older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import receipt_ledger, session_service, user_service
from .validation import ConflictError, StructuralValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--first-name', default='IT', help='Administrator first name')
@click.option('--last-name', default='Administrator', help='Administrator last name')
@click.option('--email', default='it.admin@erp-gateway.local', help='Administrator email')
@click.option('--password', default='Password123!', help='Administrator password')
@click.option('--id-card', default=None, help='Administrator RFID card number')
@with_appcontext
def init_system(first_name, last_name, email, password, id_card):
    """
    Create tables and an IT-department administrator account.

    Safe to run more than once: an existing administrator email is left as is.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing ERP gateway...")

    db.create_all()
    click.echo("PASS Tables ready")

    try:
        user = user_service.create_admin(first_name, last_name, email, password, id_card=id_card)
        click.echo(f"PASS Created administrator {user.user_id} ({user.email})")
    except ConflictError:
        click.echo(f"PASS Administrator {email} already exists")
    except StructuralValidationError as e:
        for field, message in e.errors.items():
            click.echo(f"FAIL {field}: {message}")
        return

    click.echo("DONE System initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the Goods-Receipt ledger and audit trail!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--role', prompt=True, help='Job title')
@click.option('--department', prompt=True, help='Department (IT grants user administration)')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--id-card', default=None, help='RFID card number')
@with_appcontext
def create_user_cli(first_name, last_name, role, department, email, password, id_card):
    """
    Create a new account.

    The external user_id is assigned in sequence. Password must be at least
    6 characters.
    """
    try:
        user = user_service.create_user({
            "first_name": first_name,
            "last_name": last_name,
            "role": role,
            "department": department,
            "email": email,
            "password": password,
            "id_card": id_card,
        })
    except StructuralValidationError as e:
        for field, message in e.errors.items():
            click.echo(f"FAIL {field}: {message}")
        return

    click.echo(f"PASS Created user: {user.user_id} ({user.email})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(User).order_by(User.user_id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'User ID':<12} {'Name':<28} {'Department':<14} {'Email':<30} {'Status':<9} {'RFID'}")
    click.echo("="*100)

    for user in users:
        rfid_str = "Yes" if user.id_card else "No"
        click.echo(
            f"{user.user_id:<12} {user.display_name[:27]:<28} {(user.department or '-')[:13]:<14} "
            f"{user.email[:29]:<30} {user.status:<9} {rfid_str}"
        )

    click.echo("="*100 + "\n")


@click.group('receipts')
def receipts_group():
    """Goods-Receipt ledger inspection."""


@receipts_group.command('pending')
@click.option('--older-than-minutes', type=int, default=0, show_default=True,
              help='Only rows created more than N minutes ago')
@with_appcontext
def pending_receipts(older_than_minutes):
    """
    List ledger rows still waiting for an ERP answer.

    These need manual reconciliation against the ERP: the posting may or may
    not have gone through.
    """
    rows = receipt_ledger.list_pending(older_than_minutes)

    if not rows:
        click.echo("No pending goods receipts.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Submission':<34} {'PO':<12} {'Line':<6} {'Delivery note':<18} {'Created'}")
    click.echo("="*100)

    for row in rows:
        click.echo(
            f"{row.id:<6} {row.submission_id:<34} {row.po_no:<12} {row.line_no:<6} "
            f"{row.delivery_note[:17]:<18} {row.created_at}"
        )

    click.echo("="*100)
    click.echo(f"{len(rows)} pending row(s)\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked session tokens older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} old session tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(receipts_group)
    app.cli.add_command(maintenance_group)
