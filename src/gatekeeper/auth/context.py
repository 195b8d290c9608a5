"""Authorization decisions returned by the gatekeeper."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class DenialReason(StrEnum):
    MISSING_CREDENTIAL = "missing_credential"
    UNKNOWN_CREDENTIAL = "unknown_credential"
    INACTIVE_CREDENTIAL = "inactive_credential"
    EXPIRED_CREDENTIAL = "expired_credential"
    STORE_UNAVAILABLE = "store_unavailable"


@dataclass(frozen=True)
class Allow:
    """Authenticated tenant/user, injected into downstream request handling."""

    tenant_id: str
    username: str
    auth_code: str

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    """Rejected request with the reason code surfaced to the caller."""

    reason: DenialReason

    @property
    def allowed(self) -> bool:
        return False


Decision = Allow | Deny
