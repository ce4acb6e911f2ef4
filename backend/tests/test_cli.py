# Overview: Pytest coverage for the bootstrap and maintenance CLI commands.

from datetime import timedelta

from tenantgate.extensions import db
from tenantgate.models import PlatformRole, PlatformUserRole, SecurityEvent, Store, StoreRole, StoreUserRole, User
from tenantgate.services import password_service, token_service
from tenantgate.time_utils import utcnow

from conftest import PASSWORD


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["users", "create", "--email", "Admin@Example.com", "--password", PASSWORD])
    assert result.exit_code == 0, result.output
    assert db.session.query(User).filter_by(email="admin@example.com").count() == 1

    result = runner.invoke(args=["users", "list"])
    assert "admin@example.com" in result.output


def test_users_create_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["users", "create", "--email", "a@example.com", "--password", "weak"])
    assert result.exit_code != 0
    assert "weak_password" in result.output


def test_users_set_password_recovers_account(app, make_user):
    user = make_user("locked@example.com")
    issued = token_service.issue_tokens(user)
    user.is_locked = True
    user.lockout_end = utcnow() + timedelta(minutes=10)
    db.session.commit()

    result = app.test_cli_runner().invoke(args=[
        "users", "set-password", "--email", "Locked@Example.com", "--password", "Recovered123!",
    ])
    assert result.exit_code == 0, result.output
    assert "revoked 2 tokens" in result.output

    db.session.refresh(user)
    assert user.is_locked is False
    assert token_service.find_active_access_token(issued.access_token) is None
    assert password_service.verify_password("Recovered123!", user.password_hash)


def test_users_set_password_unknown_email(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "users", "set-password", "--email", "ghost@example.com", "--password", PASSWORD,
    ])
    assert result.exit_code != 0
    assert "User not found" in result.output


def test_stores_create_with_owner(app, make_user):
    owner = make_user("owner@acme.com")
    result = app.test_cli_runner().invoke(args=[
        "stores", "create",
        "--merchant", "Acme",
        "--name", "Acme Shop",
        "--subdomain", "Acme",
        "--owner-email", "owner@acme.com",
    ])
    assert result.exit_code == 0, result.output

    store = db.session.query(Store).filter_by(subdomain="acme").one()
    membership = db.session.query(StoreUserRole).filter_by(store_id=store.id, user_id=owner.id).one()
    assert membership.role == StoreRole.OWNER


def test_stores_create_duplicate_subdomain(app, make_store):
    make_store("acme")
    result = app.test_cli_runner().invoke(args=[
        "stores", "create", "--merchant", "Other", "--name", "Other", "--subdomain", "acme",
    ])
    assert result.exit_code != 0
    assert "subdomain_taken" in result.output


def test_platform_grant_role(app, make_user):
    user = make_user("root@platform.test")
    result = app.test_cli_runner().invoke(args=["platform", "grant-role", "--email", user.email, "--role", "owner"])
    assert result.exit_code == 0, result.output
    assert db.session.query(PlatformUserRole).filter_by(user_id=user.id, role=PlatformRole.OWNER).count() == 1


def test_maintenance_cleanup(app, make_user):
    user = make_user()
    issued = token_service.issue_tokens(user)
    issued.access_record.expires_at = utcnow() - timedelta(days=60)
    db.session.add(SecurityEvent(event_type="LOGIN", success=True, occurred_at=utcnow() - timedelta(days=120)))
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["maintenance", "cleanup-tokens"])
    assert result.exit_code == 0, result.output
    assert "Deleted 1 access tokens" in result.output

    result = runner.invoke(args=["maintenance", "cleanup-security-events"])
    assert "Deleted 1 security events" in result.output
