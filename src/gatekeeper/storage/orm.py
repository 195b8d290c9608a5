"""SQLAlchemy ORM models for the auth code store."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, String, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# ──────────────────────────────────────────────
# Auth Codes
# ──────────────────────────────────────────────


class AuthCode(Base):
    """One issued auth code and its accumulated usage.

    Rows are never deleted: retired codes are deactivated or left to expire.
    """

    __tablename__ = "auth_codes"
    __table_args__ = (
        # Range scans for per-tenant listing.
        Index("ix_auth_codes_tenant_code", "tenant_id", "auth_code"),
        CheckConstraint(
            "expires_at IS NULL OR created_at <= expires_at",
            name="ck_auth_codes_created_before_expiry",
        ),
        CheckConstraint("usage_count >= 0", name="ck_auth_codes_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuthCode(tenant_id='{self.tenant_id}', "
            f"username='{self.username}', is_active={self.is_active})>"
        )

    auth_code: Mapped[str] = mapped_column(String(128), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(200))
    username: Mapped[str] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(default=True, server_default=text("true"))
    usage_count: Mapped[int] = mapped_column(
        BigInteger, default=0, server_default=text("0")
    )
    created_by: Mapped[str] = mapped_column(String(200))
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
