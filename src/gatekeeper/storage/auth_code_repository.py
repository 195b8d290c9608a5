"""Repository for auth code rows."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from sqlalchemy import bindparam, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.storage.orm import AuthCode


class AuthCodeRepository:
    """Session-bound CRUD for the ``auth_codes`` table.

    Not tenant-scoped: the admin surface lists across tenants and the
    gatekeeper looks codes up by their globally unique value. Methods
    flush but never commit; the caller controls the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        auth_code: str,
        tenant_id: str,
        username: str,
        created_at: datetime,
        created_by: str,
        expires_at: datetime | None = None,
    ) -> AuthCode:
        """Insert a new, active auth code with zero usage."""
        row = AuthCode(
            auth_code=auth_code,
            tenant_id=tenant_id,
            username=username,
            created_at=created_at,
            created_by=created_by,
            expires_at=expires_at,
            is_active=True,
            usage_count=0,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_by_code(self, auth_code: str) -> AuthCode | None:
        """Point lookup by exact code."""
        stmt = select(AuthCode).where(AuthCode.auth_code == auth_code)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_codes(
        self,
        *,
        tenant_id: str | None = None,
        username: str | None = None,
        limit: int | None = None,
    ) -> list[AuthCode]:
        """List codes ordered by (tenant_id, auth_code).

        Args:
            tenant_id: Restrict to one tenant.
            username: Restrict to one holder.
            limit: Maximum number of rows.
        """
        stmt = select(AuthCode).order_by(AuthCode.tenant_id, AuthCode.auth_code)
        if tenant_id is not None:
            stmt = stmt.where(AuthCode.tenant_id == tenant_id)
        if username is not None:
            stmt = stmt.where(AuthCode.username == username)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def set_active(self, auth_code: str, *, is_active: bool) -> AuthCode | None:
        """Flip the activity flag. Returns the updated row or None if unknown."""
        row = await self.get_by_code(auth_code)
        if row is None:
            return None
        row.is_active = is_active
        await self._session.flush()
        return row

    async def set_active_for_holder(
        self, tenant_id: str, username: str, *, is_active: bool
    ) -> list[AuthCode]:
        """Set the activity flag on every code held by ``tenant_id/username``.

        Returns all of the holder's rows, ordered by code; empty if unknown.
        """
        rows = await self.list_codes(tenant_id=tenant_id, username=username)
        for row in rows:
            row.is_active = is_active
        if rows:
            await self._session.flush()
        return rows

    async def increment_usage(self, counts: Mapping[str, int]) -> None:
        """Add per-code deltas to ``usage_count`` in one executemany batch.

        Codes missing from the table are ignored.
        """
        if not counts:
            return
        table = AuthCode.__table__
        stmt = (
            update(table)
            .where(table.c.auth_code == bindparam("code"))
            .values(usage_count=table.c.usage_count + bindparam("delta"))
        )
        params = [
            {"code": code, "delta": delta} for code, delta in counts.items() if delta > 0
        ]
        if params:
            await self._session.execute(stmt, params)
