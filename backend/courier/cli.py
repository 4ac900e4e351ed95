# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/courier/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to courier (PowerShell: $env:FLASK_APP="courier").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates missing tables and the administrator account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/repair:
# - python -m flask users list
#   List all users with role and balance.
# - python -m flask users set-balance alice 100
#   Administrative balance adjustment to an absolute value.
#
# Item inspection:
# - python -m flask items list [--src alice] [--dst bob]
#   List items, optionally filtered by sender/recipient.
# - python -m flask items delete 5
#   Delete an item by id.
#
# Sessions:
# - python -m flask sessions list
#   Show who is logged in.
# - python -m flask sessions drop alice
#   Revoke a user's session.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import (
    auth_service,
    item_service,
    ledger_service,
    maintenance_service,
    session_service,
    store_service,
)
from .services.store_service import ItemFilter
from .validation import CourierError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create missing tables and the administrator account.

    SECURITY: Change the administrator password immediately in production!
    """
    click.echo("START Initializing courier backend...")
    maintenance_service.init_store()
    click.echo(f"PASS Administrator account: {auth_service.administrator_username()}")
    click.echo("DONE System initialized.")


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
    maintenance_service.reset_store()
    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User inspection commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and balance."""
    users = store_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Username':<12} {'Role':<15} {'Balance':>12}  {'Name':<20} {'Phone'}")
    click.echo("="*80)

    for user in users:
        click.echo(f"{user.username:<12} {user.role:<15} {user.balance:>12}  {user.name:<20} {user.phone}")

    click.echo("="*80 + "\n")


@users_group.command('set-balance')
@click.argument('username')
@click.argument('balance', type=int)
@with_appcontext
def set_balance(username, balance):
    """Set a user's balance (administrative adjustment)."""
    user = store_service.get_user_by_username(username)
    if user is None:
        raise click.ClickException(f"User {username} not found")

    error = ledger_service.adjust_balance(username, balance - user.balance)
    if error:
        db.session.rollback()
        raise click.ClickException(error)

    db.session.commit()
    click.echo(f"PASS {username} balance is now {balance}")


@click.group('items')
def items_group():
    """Item inspection commands."""


@items_group.command('list')
@click.option('--src', 'src_username', help='Filter by sender username')
@click.option('--dst', 'dst_username', help='Filter by recipient username')
@with_appcontext
def list_items(src_username, dst_username):
    """List items, optionally filtered by sender/recipient."""
    items = item_service.query_by_filter(ItemFilter(src_username=src_username, dst_username=dst_username))

    if not items:
        click.echo("No items found.")
        return

    click.echo(f"{'ID':<6} {'From':<12} {'To':<12} {'Category':<9} {'Cost':>6}  {'State':<18} {'Sent':<11} {'Received'}")
    for item in items:
        received = item.receiving_date.isoformat() if item.receiving_date else "-"
        click.echo(
            f"{item.id:<6} {item.src_username:<12} {item.dst_username:<12} {item.category:<9} "
            f"{item.cost:>6}  {item.state:<18} {item.sending_date.isoformat():<11} {received}"
        )
    click.echo(f"\n{len(items)} item(s)")


@items_group.command('delete')
@click.argument('item_id', type=int)
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def delete_item(item_id, yes):
    """Delete an item by id."""
    if not yes:
        click.confirm(f"Delete item {item_id}?", abort=True)

    try:
        deleted = item_service.delete(item_id)
    except CourierError as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    if not deleted:
        raise click.ClickException(f"Item {item_id} not found")
    db.session.commit()
    click.echo(f"PASS Deleted item {item_id}")


@click.group('sessions')
def sessions_group():
    """Session inspection commands."""


@sessions_group.command('list')
@with_appcontext
def list_sessions():
    """Show active sessions."""
    sessions = session_service.active_sessions()
    if not sessions:
        click.echo("No active sessions.")
        return
    for s in sessions:
        click.echo(f"{s.username:<12} since {s.created_at.isoformat()}  last used {s.last_used_at.isoformat()}")


@sessions_group.command('drop')
@click.argument('username')
@with_appcontext
def drop_session(username):
    """Revoke a user's session."""
    if session_service.drop_sessions_for(username):
        click.echo(f"PASS Session for {username} revoked")
    else:
        click.echo(f"WARN {username} has no active session")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(sessions_group)
