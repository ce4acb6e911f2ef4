# Overview: Flask CLI command groups for bootstrap and maintenance.

# backend/tenantgate/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Users:
# - python -m flask users create --email owner@example.com --password "Password123!"
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List users with lock and MFA state.
# - python -m flask users set-password --email owner@example.com --password "NewPassword123!"
#   Reset a password; the user's lockout and tokens are cleared.
#
# Stores (MULTI-TENANT):
# - python -m flask stores create --merchant "Acme" --name "Acme Shop" --subdomain acme --owner-email owner@example.com
#   Create a merchant with its first store, optionally naming an existing user as Owner.
#
# Platform roles:
# - python -m flask platform grant-role --email ops@example.com --role owner
#   Bootstrap a platform Owner (the API endpoint requires one to exist already).
#
# Maintenance:
# - python -m flask maintenance cleanup-tokens --retention-days 30
#   Delete token rows that expired before the retention window and spent WebAuthn challenges.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .errors import AuthFlowError
from .extensions import db
from .models import StoreRole, User
from .services import login_throttle_service, maintenance_service, team_service, token_service
from .services.password_service import create_user, get_user_by_email, set_password


@click.group('users')
def users_group():
    """User bootstrap and inspection commands."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_cli(email, password):
    """Create a user. Password strength rules apply."""
    try:
        user = create_user(email, password)
    except AuthFlowError as e:
        raise click.ClickException(f"{e.code}: {e}")
    click.echo(f"PASS Created user {user.email} (ID: {user.id})")


@users_group.command('set-password')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def set_password_cli(email, password):
    """Account recovery. Clears any lockout and revokes every token the user holds."""
    user = get_user_by_email(email)
    if user is None:
        raise click.ClickException(f"User not found: {email}")
    try:
        set_password(user, password)
    except AuthFlowError as e:
        raise click.ClickException(f"{e.code}: {e}")
    login_throttle_service.clear_lockout(user)
    revoked = token_service.revoke_all_user_tokens(user.id)
    click.echo(f"PASS Password reset for {user.email}; revoked {revoked} tokens")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users.")
        return
    for user in users:
        flags = []
        if user.mfa_enabled:
            flags.append("mfa")
        if user.is_locked:
            flags.append("locked")
        click.echo(f"{user.id:>5}  {user.email}  {' '.join(flags)}")


@click.group('stores')
def stores_group():
    """Merchant and store bootstrap commands."""


@stores_group.command('create')
@click.option('--merchant', 'merchant_name', required=True, help='Merchant (tenant) name')
@click.option('--name', 'store_name', required=True, help='Store display name')
@click.option('--subdomain', required=True, help='Unique store subdomain')
@click.option('--primary-domain', default=None, help='Merchant custom domain')
@click.option('--owner-email', default=None, help='Existing user to make store Owner')
@with_appcontext
def create_store_cli(merchant_name, store_name, subdomain, primary_domain, owner_email):
    owner = None
    if owner_email:
        owner = get_user_by_email(owner_email)
        if owner is None:
            raise click.ClickException(f"No user with email {owner_email}")

    try:
        store = team_service.create_store(merchant_name, store_name, subdomain, primary_domain)
    except AuthFlowError as e:
        raise click.ClickException(f"{e.code}: {e}")

    click.echo(f"PASS Created store {store.name} (ID: {store.id}, subdomain: {store.subdomain})")
    if owner is not None:
        team_service.set_store_role(store.id, owner.id, StoreRole.OWNER)
        click.echo(f"PASS {owner.email} is Owner of store {store.id}")


@click.group('platform')
def platform_group():
    """Platform role administration."""


@platform_group.command('grant-role')
@click.option('--email', required=True)
@click.option('--role', type=click.Choice(['owner', 'staff'], case_sensitive=False), required=True)
@with_appcontext
def grant_platform_role_cli(email, role):
    user = get_user_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    team_service.grant_platform_role(user.id, role)
    click.echo(f"PASS Granted platform {role.upper()} to {user.email}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-tokens')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_tokens_cli(retention_days):
    result = maintenance_service.cleanup_tokens(retention_days=retention_days)
    click.echo(
        f"Deleted {result['access_tokens_deleted']} access tokens, "
        f"{result['refresh_tokens_deleted']} refresh tokens, "
        f"{result['webauthn_challenges_deleted']} WebAuthn challenges."
    )


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(platform_group)
    app.cli.add_command(maintenance_group)
