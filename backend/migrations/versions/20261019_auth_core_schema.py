"""Auth core schema: users, tokens, login ledger, passkeys, tenancy, audit

Creates every table used by authentication and tenant-scoped authorization:
1. users, access_tokens, refresh_tokens (rotation chain via parent_token_id)
2. login_attempts (append-only ledger with outcome)
3. webauthn_credentials, webauthn_challenges
4. merchants, stores, store_user_roles, store_user_permissions,
   platform_user_roles, team_invite_tokens
5. security_events

Revision ID: tg001_auth_core
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'tg001_auth_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('lockout_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('mfa_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mfa_secret', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('refresh_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('parent_token_id', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=256), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_token_id'], ['refresh_tokens.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_refresh_tokens_token_hash', 'refresh_tokens', ['token_hash'], unique=True)
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])
    op.create_index('ix_refresh_tokens_parent_token_id', 'refresh_tokens', ['parent_token_id'])
    op.create_index('ix_refresh_tokens_expires_at', 'refresh_tokens', ['expires_at'])
    op.create_index('ix_refresh_tokens_user_revoked', 'refresh_tokens', ['user_id', 'revoked_at'])

    op.create_table('access_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('scope', sa.String(length=200), nullable=True),
        sa.Column('refresh_token_id', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('client_ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=256), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['refresh_token_id'], ['refresh_tokens.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_access_tokens_token_hash', 'access_tokens', ['token_hash'], unique=True)
    op.create_index('ix_access_tokens_user_id', 'access_tokens', ['user_id'])
    op.create_index('ix_access_tokens_refresh_token_id', 'access_tokens', ['refresh_token_id'])
    op.create_index('ix_access_tokens_expires_at', 'access_tokens', ['expires_at'])
    op.create_index('ix_access_tokens_user_revoked', 'access_tokens', ['user_id', 'revoked_at'])

    op.create_table('login_attempts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('outcome', sa.String(length=32), nullable=False),
        sa.Column('client_ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=256), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_login_attempts_created_at', 'login_attempts', ['created_at'])
    op.create_index('ix_login_attempts_email_created', 'login_attempts', ['email', 'created_at'])

    op.create_table('webauthn_credentials',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('credential_id', sa.String(length=512), nullable=False),
        sa.Column('public_key', sa.LargeBinary(), nullable=False),
        sa.Column('sign_count', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('aaguid', sa.String(length=36), nullable=True),
        sa.Column('cred_type', sa.String(length=32), nullable=False, server_default='public-key'),
        sa.Column('transports', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_webauthn_credentials_credential_id', 'webauthn_credentials', ['credential_id'], unique=True)
    op.create_index('ix_webauthn_credentials_user_id', 'webauthn_credentials', ['user_id'])

    op.create_table('webauthn_challenges',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('ceremony', sa.String(length=16), nullable=False),
        sa.Column('challenge', sa.String(length=128), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('challenge', name='uq_webauthn_challenges_challenge'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_webauthn_challenges_user_id', 'webauthn_challenges', ['user_id'])
    op.create_index('ix_webauthn_challenges_user_ceremony', 'webauthn_challenges', ['user_id', 'ceremony'])

    # ==========================================================================
    # Tenancy
    # ==========================================================================
    op.create_table('merchants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('primary_domain', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('primary_domain', name='uq_merchants_primary_domain'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_merchants_primary_domain', 'merchants', ['primary_domain'])

    op.create_table('stores',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('merchant_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('subdomain', sa.String(length=63), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['merchant_id'], ['merchants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subdomain', name='uq_stores_subdomain'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stores_merchant_id', 'stores', ['merchant_id'])
    op.create_index('ix_stores_subdomain', 'stores', ['subdomain'])

    op.create_table('store_user_roles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.Integer(), nullable=False),
        sa.Column('custom_role_name', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'user_id', name='uq_store_user_roles_store_user'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_store_user_roles_store_id', 'store_user_roles', ['store_id'])
    op.create_index('ix_store_user_roles_user_id', 'store_user_roles', ['user_id'])

    op.create_table('store_user_permissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('permission', sa.String(length=64), nullable=False),
        sa.Column('granted_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['granted_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'user_id', 'permission', name='uq_store_user_permissions_store_user_perm'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_store_user_permissions_store_user', 'store_user_permissions', ['store_id', 'user_id'])

    op.create_table('platform_user_roles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'role', name='uq_platform_user_roles_user_role'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_platform_user_roles_user_id', 'platform_user_roles', ['user_id'])

    op.create_table('team_invite_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('token_hash', sa.String(length=128), nullable=False),
        sa.Column('role', sa.Integer(), nullable=False),
        sa.Column('custom_role_name', sa.String(length=64), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_team_invite_tokens_token_hash', 'team_invite_tokens', ['token_hash'], unique=True)
    op.create_index('ix_team_invite_tokens_store_email', 'team_invite_tokens', ['store_id', 'email'])

    # ==========================================================================
    # Audit
    # ==========================================================================
    op.create_table('security_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_security_events_user_id', 'security_events', ['user_id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_success', 'security_events', ['success'])
    op.create_index('ix_security_events_occurred_at', 'security_events', ['occurred_at'])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])
    op.create_index('ix_security_events_store_occurred', 'security_events', ['store_id', 'occurred_at'])


def downgrade():
    op.drop_table('security_events')
    op.drop_table('team_invite_tokens')
    op.drop_table('platform_user_roles')
    op.drop_table('store_user_permissions')
    op.drop_table('store_user_roles')
    op.drop_table('stores')
    op.drop_table('merchants')
    op.drop_table('webauthn_challenges')
    op.drop_table('webauthn_credentials')
    op.drop_table('login_attempts')
    op.drop_table('access_tokens')
    op.drop_table('refresh_tokens')
    op.drop_table('users')
