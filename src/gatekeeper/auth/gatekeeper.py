"""Request-path authorization for auth codes.

Lookup order is cache first, then the durable store. The gatekeeper only
reads from the store; usage is handed to the accumulator after an Allow
and written later in batches. When the store cannot be reached on a
cache miss, the decision is a denial (fail-closed).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

import structlog

from gatekeeper.auth.cache import ValidationCache
from gatekeeper.auth.codes import mask_auth_code
from gatekeeper.auth.context import Allow, Decision, DenialReason, Deny
from gatekeeper.auth.usage import UsageAccumulator
from gatekeeper.errors import StoreUnavailableError
from gatekeeper.models.auth_code import AuthCodeRecord

logger = structlog.get_logger()


class AuthCodeLookup(Protocol):
    async def get_by_code(self, auth_code: str) -> AuthCodeRecord | None: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Gatekeeper:
    """Admit or reject requests by auth code and meter accepted ones.

    Safe for concurrent use from many request handlers. Concurrent cache
    misses for the same code share a single store lookup, which is
    bounded by ``lookup_timeout_seconds``; a store that does not answer
    in time is treated as unavailable.
    """

    def __init__(
        self,
        store: AuthCodeLookup,
        cache: ValidationCache,
        accumulator: UsageAccumulator,
        *,
        lookup_timeout_seconds: float = 2.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._lookup_timeout = lookup_timeout_seconds
        self._cache = cache
        self._accumulator = accumulator
        self._clock = clock
        self._inflight: dict[str, asyncio.Future[AuthCodeRecord | None]] = {}

    @property
    def cache(self) -> ValidationCache:
        return self._cache

    async def authorize(self, code: str | None) -> Decision:
        """Decide whether a request carrying ``code`` may proceed.

        Args:
            code: Raw header value; None or blank counts as missing.

        Returns:
            ``Allow`` with the owning tenant/user, or ``Deny`` with a reason.
        """
        if not code or not code.strip():
            return self._deny(DenialReason.MISSING_CREDENTIAL, code)

        record = self._cache.get(code)
        if record is None:
            try:
                record = await self._lookup(code)
            except StoreUnavailableError:
                return self._deny(DenialReason.STORE_UNAVAILABLE, code)
            if record is None:
                return self._deny(DenialReason.UNKNOWN_CREDENTIAL, code)
            self._cache.put(record, self._clock())

        if not record.is_active:
            return self._deny(DenialReason.INACTIVE_CREDENTIAL, code)
        if record.is_expired(self._clock()):
            return self._deny(DenialReason.EXPIRED_CREDENTIAL, code)

        self._accumulator.record(code)
        logger.debug(
            "auth_allowed",
            code=mask_auth_code(code),
            tenant_id=record.tenant_id,
            username=record.username,
        )
        return Allow(
            tenant_id=record.tenant_id,
            username=record.username,
            auth_code=code,
        )

    async def _lookup(self, code: str) -> AuthCodeRecord | None:
        """Store lookup, coalesced per code across concurrent callers."""
        future = self._inflight.get(code)
        if future is None:
            future = asyncio.ensure_future(self._timed_get(code))
            self._inflight[code] = future
            future.add_done_callback(lambda f, c=code: self._finish_lookup(c, f))
        # Shielded so one cancelled waiter does not cancel the shared lookup.
        return await asyncio.shield(future)

    async def _timed_get(self, code: str) -> AuthCodeRecord | None:
        """Store lookup bounded by the lookup timeout.

        Raises:
            StoreUnavailableError: the store failed or did not answer in time.
        """
        try:
            async with asyncio.timeout(self._lookup_timeout):
                return await self._store.get_by_code(code)
        except TimeoutError as exc:
            logger.warning(
                "auth_store_lookup_timeout",
                timeout_seconds=self._lookup_timeout,
                code=mask_auth_code(code),
            )
            msg = f"get_by_code timed out after {self._lookup_timeout}s"
            raise StoreUnavailableError(msg) from exc

    def _finish_lookup(
        self, code: str, future: asyncio.Future[AuthCodeRecord | None]
    ) -> None:
        if self._inflight.get(code) is future:
            del self._inflight[code]
        if not future.cancelled():
            # Mark retrieved; every waiter may have gone away.
            future.exception()

    @staticmethod
    def _deny(reason: DenialReason, code: str | None) -> Deny:
        logger.info(
            "auth_denied",
            reason=str(reason),
            code=mask_auth_code(code) if code else None,
        )
        return Deny(reason=reason)
