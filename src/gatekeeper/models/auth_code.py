"""Auth code domain schema shared by the gatekeeper, store and admin layers."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AuthCodeRecord(BaseModel):
    """Snapshot of one row of the auth code table.

    Decoupled from the ORM so cached snapshots never hold a live
    SQLAlchemy session reference.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    auth_code: str
    tenant_id: str
    username: str
    created_at: datetime
    is_active: bool = True
    usage_count: int = 0
    created_by: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """True when ``expires_at`` is set and not after ``now``."""
        return self.expires_at is not None and self.expires_at <= now

    def remaining_seconds(self, now: datetime) -> float | None:
        """Seconds until expiry, or None for codes that never expire."""
        if self.expires_at is None:
            return None
        return (self.expires_at - now).total_seconds()
