"""Add store-defined role templates

Revision ID: tg002_store_role_templates
Revises: tg001_auth_core
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "tg002_store_role_templates"
down_revision = "tg001_auth_core"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "store_role_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("permissions_csv", sa.Text(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "name", name="uq_store_role_templates_store_name"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("store_role_templates", schema=None) as batch_op:
        batch_op.create_index("ix_store_role_templates_store_id", ["store_id"], unique=False)


def downgrade():
    with op.batch_alter_table("store_role_templates", schema=None) as batch_op:
        batch_op.drop_index("ix_store_role_templates_store_id")

    op.drop_table("store_role_templates")
