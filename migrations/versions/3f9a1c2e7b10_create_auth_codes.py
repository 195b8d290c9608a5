"""create_auth_codes

Auth code table with a composite (tenant_id, auth_code) index for
per-tenant listing. Point lookups go through the primary key.

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-18 09:12:41.508213

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f9a1c2e7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create auth_codes."""
    op.create_table(
        "auth_codes",
        sa.Column("auth_code", sa.String(length=128), nullable=False),
        sa.Column("tenant_id", sa.String(length=200), nullable=False),
        sa.Column("username", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column(
            "usage_count", sa.BigInteger(), server_default=sa.text("0"), nullable=False
        ),
        sa.Column("created_by", sa.String(length=200), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("auth_code"),
        sa.CheckConstraint(
            "expires_at IS NULL OR created_at <= expires_at",
            name="ck_auth_codes_created_before_expiry",
        ),
        sa.CheckConstraint("usage_count >= 0", name="ck_auth_codes_usage_non_negative"),
    )
    op.create_index(
        "ix_auth_codes_tenant_code", "auth_codes", ["tenant_id", "auth_code"]
    )


def downgrade() -> None:
    """Drop auth_codes."""
    op.drop_index("ix_auth_codes_tenant_code", table_name="auth_codes")
    op.drop_table("auth_codes")
