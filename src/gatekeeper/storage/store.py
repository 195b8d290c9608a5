"""Durable auth code store adapter.

The gatekeeper, usage accumulator and admin service only talk to the
store through the ``AuthCodeStore`` protocol. ``SqlAuthCodeStore`` backs
it with SQLAlchemy, opening an isolated session per operation and
translating driver failures into ``StoreUnavailableError`` so callers
can tell "bad credential" from "system degraded".
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.errors import StoreUnavailableError
from gatekeeper.models.auth_code import AuthCodeRecord
from gatekeeper.storage.auth_code_repository import AuthCodeRepository

logger = structlog.get_logger()


class DuplicateAuthCodeError(Exception):
    """Insert collided with an existing auth code."""


class AuthCodeStore(Protocol):
    async def get_by_code(self, auth_code: str) -> AuthCodeRecord | None: ...

    async def insert(self, record: AuthCodeRecord) -> None: ...

    async def list_codes(
        self,
        *,
        tenant_id: str | None = None,
        username: str | None = None,
        limit: int | None = None,
    ) -> list[AuthCodeRecord]: ...

    async def set_active(
        self, auth_code: str, *, is_active: bool
    ) -> AuthCodeRecord | None: ...

    async def set_active_for_holder(
        self, tenant_id: str, username: str, *, is_active: bool
    ) -> list[AuthCodeRecord]: ...

    async def increment_usage(self, counts: Mapping[str, int]) -> None: ...


class SqlAuthCodeStore:
    """``AuthCodeStore`` backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_code(self, auth_code: str) -> AuthCodeRecord | None:
        try:
            async with self._session_factory() as session:
                row = await AuthCodeRepository(session).get_by_code(auth_code)
                return AuthCodeRecord.model_validate(row) if row else None
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("get_by_code", exc) from exc

    async def insert(self, record: AuthCodeRecord) -> None:
        try:
            async with self._session_factory() as session:
                await AuthCodeRepository(session).create(
                    auth_code=record.auth_code,
                    tenant_id=record.tenant_id,
                    username=record.username,
                    created_at=record.created_at,
                    created_by=record.created_by,
                    expires_at=record.expires_at,
                )
                await session.commit()
        except IntegrityError as exc:
            raise DuplicateAuthCodeError(record.auth_code) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("insert", exc) from exc

    async def list_codes(
        self,
        *,
        tenant_id: str | None = None,
        username: str | None = None,
        limit: int | None = None,
    ) -> list[AuthCodeRecord]:
        try:
            async with self._session_factory() as session:
                rows = await AuthCodeRepository(session).list_codes(
                    tenant_id=tenant_id, username=username, limit=limit
                )
                return [AuthCodeRecord.model_validate(row) for row in rows]
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("list_codes", exc) from exc

    async def set_active(
        self, auth_code: str, *, is_active: bool
    ) -> AuthCodeRecord | None:
        try:
            async with self._session_factory() as session:
                row = await AuthCodeRepository(session).set_active(
                    auth_code, is_active=is_active
                )
                if row is None:
                    return None
                record = AuthCodeRecord.model_validate(row)
                await session.commit()
                return record
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("set_active", exc) from exc

    async def set_active_for_holder(
        self, tenant_id: str, username: str, *, is_active: bool
    ) -> list[AuthCodeRecord]:
        try:
            async with self._session_factory() as session:
                rows = await AuthCodeRepository(session).set_active_for_holder(
                    tenant_id, username, is_active=is_active
                )
                records = [AuthCodeRecord.model_validate(row) for row in rows]
                if rows:
                    await session.commit()
                return records
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("set_active_for_holder", exc) from exc

    async def increment_usage(self, counts: Mapping[str, int]) -> None:
        try:
            async with self._session_factory() as session:
                await AuthCodeRepository(session).increment_usage(counts)
                await session.commit()
        except (SQLAlchemyError, OSError) as exc:
            raise self._unavailable("increment_usage", exc) from exc

    @staticmethod
    def _unavailable(operation: str, exc: Exception) -> StoreUnavailableError:
        logger.warning(
            "auth_store_unavailable",
            operation=operation,
            error=type(exc).__name__,
        )
        return StoreUnavailableError(f"{operation} failed: {type(exc).__name__}")
