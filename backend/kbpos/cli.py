# Overview: Flask CLI command groups for bootstrap, user management and ledger maintenance.

# backend/kbpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--email admin@kbpos.local] [--password "Password123!"]
#   Create all tables and a default admin account (idempotent).
#
# User management:
# - python -m flask users create --name "Kasir 1" --email kasir1@kbpos.local --password "Password123!" --role staff
#   Create a login account (prompts if options are omitted).
#
# Ledger maintenance:
# - python -m flask ledger reconcile [--fix]
#   Compare Product.total_sold with the sum of sold quantities; --fix overwrites drifted counters.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services.auth_service import create_user, PasswordValidationError
from .services.ledger_service import reconcile_total_sold
from .validation import ConflictError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--name', default='Administrator', show_default=True, help='Admin display name')
@click.option('--email', default='admin@kbpos.local', show_default=True, help='Admin email')
@click.option('--password', default='Password123!', show_default=True, help='Admin password')
@with_appcontext
def init_system(name, email, password):
    """
    Create tables and the first admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing KBPOS...")
    db.create_all()
    click.echo("PASS Tables ready")

    if db.session.query(User).filter_by(email=email.strip().lower()).first():
        click.echo(f"WARN  User '{email}' already exists, skipping...")
        return

    try:
        user = create_user(name=name, email=email, password=password, role="admin")
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """Create a login account."""
    try:
        user = create_user(name=name, email=email, password=password, role=role)
    except ConflictError as e:
        raise click.ClickException(str(e))
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed: {e}")
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")


@click.group('ledger')
def ledger_group():
    """Product sold-quantity ledger maintenance."""


@ledger_group.command('reconcile')
@click.option('--fix', is_flag=True, default=False, help='Overwrite drifted counters with recomputed values')
@with_appcontext
def reconcile_cli(fix):
    """Report (and optionally repair) products whose total_sold drifted from their sale items."""
    mismatches = reconcile_total_sold(fix=fix)
    if not mismatches:
        click.echo("PASS All product totals match their sale items")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'Product':<10} {'Recorded':<12} {'Expected':<12}")
    click.echo("="*60)
    for row in mismatches:
        click.echo(f"{row['product_id']:<10} {row['recorded']:<12} {row['expected']:<12}")
    click.echo("="*60)
    if fix:
        click.echo(f"PASS Corrected {len(mismatches)} product(s)")
    else:
        click.echo(f"WARN  {len(mismatches)} product(s) drifted; rerun with --fix to correct")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
