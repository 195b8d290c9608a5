"""Admin operations: issue, list and deactivate auth codes.

The admin surface always goes to the durable store directly. Issuance is
write-through and listing never reads the validation cache, so usage
counts reflect the last successful flush.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from gatekeeper.auth.cache import ValidationCache
from gatekeeper.auth.codes import generate_auth_code, mask_auth_code, truncate_to_ms
from gatekeeper.errors import (
    AdminUnauthorizedError,
    AuthCodeNotFoundError,
    AuthCodeValidationError,
)
from gatekeeper.models.auth_code import AuthCodeRecord
from gatekeeper.storage.store import AuthCodeStore, DuplicateAuthCodeError

logger = structlog.get_logger()

# Collisions on 192 random bits are not expected; the retry only guards
# against a broken randomness source looping forever.
MAX_GENERATE_ATTEMPTS = 3


def verify_admin_token(authorization: str | None, expected: str | None) -> None:
    """Check an ``Authorization: Bearer <token>`` header against the admin secret.

    Uses a constant-time comparison.

    Raises:
        AdminUnauthorizedError: header missing or not Bearer, no admin
            token configured, or token mismatch.
    """
    if not expected:
        raise AdminUnauthorizedError("Admin token not configured")
    if not authorization:
        raise AdminUnauthorizedError("Missing admin token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AdminUnauthorizedError("Malformed authorization header")
    if not hmac.compare_digest(token.strip().encode(), expected.encode()):
        raise AdminUnauthorizedError("Invalid admin token")


def _require(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise AuthCodeValidationError(field, "must not be empty")
    return value.strip()


class AdminService:
    """Auth code issuance and inspection against the durable store."""

    def __init__(
        self,
        store: AuthCodeStore,
        *,
        cache: ValidationCache | None = None,
        code_prefix: str = "tupleap",
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._store = store
        self._cache = cache
        self._code_prefix = code_prefix
        self._clock = clock

    async def generate(
        self,
        tenant_id: str,
        username: str,
        created_by: str = "admin",
        expires_at: datetime | None = None,
    ) -> AuthCodeRecord:
        """Issue a new active auth code and persist it synchronously.

        The returned record is the only place the plaintext code appears.
        A past ``expires_at`` is accepted; ``created_at`` is then clamped to
        it so ``created_at <= expires_at`` still holds.

        Raises:
            AuthCodeValidationError: empty tenant_id, username or created_by.
            StoreUnavailableError: the insert could not be written.
        """
        tenant_id = _require("tenant_id", tenant_id)
        username = _require("username", username)
        created_by = _require("created_by", created_by)

        created_at = truncate_to_ms(self._clock())
        if expires_at is not None:
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)
            expires_at = truncate_to_ms(expires_at)
            created_at = min(created_at, expires_at)

        for attempt in range(1, MAX_GENERATE_ATTEMPTS + 1):
            record = AuthCodeRecord(
                auth_code=generate_auth_code(self._code_prefix),
                tenant_id=tenant_id,
                username=username,
                created_at=created_at,
                created_by=created_by,
                expires_at=expires_at,
            )
            try:
                await self._store.insert(record)
            except DuplicateAuthCodeError:
                logger.warning("auth_code_collision", attempt=attempt)
                continue
            logger.info(
                "auth_code_issued",
                tenant_id=tenant_id,
                username=username,
                created_by=created_by,
                code=mask_auth_code(record.auth_code),
                expires_at=expires_at.isoformat() if expires_at else None,
            )
            return record

        msg = f"Could not generate a unique auth code in {MAX_GENERATE_ATTEMPTS} attempts"
        raise RuntimeError(msg)

    async def list_codes(
        self,
        tenant_id: str | None = None,
        *,
        username: str | None = None,
        limit: int | None = None,
    ) -> list[AuthCodeRecord]:
        """List codes ordered by (tenant_id, auth_code), with masked codes.

        Raises:
            AuthCodeValidationError: non-positive ``limit``.
            StoreUnavailableError: the query failed.
        """
        if limit is not None and limit <= 0:
            raise AuthCodeValidationError("limit", "must be positive")
        records = await self._store.list_codes(
            tenant_id=tenant_id or None,
            username=username or None,
            limit=limit,
        )
        return [
            r.model_copy(update={"auth_code": mask_auth_code(r.auth_code)})
            for r in records
        ]

    async def deactivate(self, auth_code: str) -> AuthCodeRecord:
        """Mark a code inactive and evict it from the local cache.

        Other gatekeeper instances stop accepting it within one cache TTL.

        Raises:
            AuthCodeValidationError: empty code.
            AuthCodeNotFoundError: code does not exist.
            StoreUnavailableError: the update failed.
        """
        auth_code = _require("auth_code", auth_code)
        record = await self._store.set_active(auth_code, is_active=False)
        if record is None:
            raise AuthCodeNotFoundError(mask_auth_code(auth_code))
        if self._cache is not None:
            self._cache.invalidate(auth_code)
        logger.info(
            "auth_code_deactivated",
            tenant_id=record.tenant_id,
            username=record.username,
            code=mask_auth_code(auth_code),
        )
        return record.model_copy(update={"auth_code": mask_auth_code(auth_code)})

    async def deactivate_holder(
        self, tenant_id: str, username: str
    ) -> list[AuthCodeRecord]:
        """Deactivate every code held by one tenant user.

        Needs no plaintext code, so a code whose holder lost it can still
        be revoked. Codes are evicted from the local cache.

        Raises:
            AuthCodeValidationError: empty tenant_id or username.
            AuthCodeNotFoundError: the holder has no codes.
            StoreUnavailableError: the update failed.
        """
        tenant_id = _require("tenant_id", tenant_id)
        username = _require("username", username)
        records = await self._store.set_active_for_holder(
            tenant_id, username, is_active=False
        )
        if not records:
            raise AuthCodeNotFoundError(f"{tenant_id}/{username}")
        if self._cache is not None:
            for record in records:
                self._cache.invalidate(record.auth_code)
        logger.info(
            "auth_codes_deactivated_for_holder",
            tenant_id=tenant_id,
            username=username,
            count=len(records),
        )
        return [
            r.model_copy(update={"auth_code": mask_auth_code(r.auth_code)})
            for r in records
        ]
