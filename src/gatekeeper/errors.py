"""Domain-specific exceptions for the gatekeeper."""

from __future__ import annotations


class StoreUnavailableError(Exception):
    """The durable auth code store could not be reached or failed a query."""


class AdminUnauthorizedError(Exception):
    """Admin bearer token missing, malformed, unconfigured or wrong."""


class AuthCodeValidationError(Exception):
    """Invalid admin input (e.g. empty tenant_id or username)."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class AuthCodeNotFoundError(Exception):
    """Admin operation referenced an auth code that does not exist."""
