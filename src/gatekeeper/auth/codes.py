"""Auth code generation and display utilities."""

from __future__ import annotations

import secrets
from datetime import datetime


def generate_auth_code(prefix: str = "tupleap") -> str:
    """Generate a new opaque auth code.

    The random part carries 192 bits from ``secrets``; the code holds no
    tenant or user information. Shown in plaintext only at issuance.

    Args:
        prefix: Human-readable marker identifying the issuing system.

    Returns:
        Code of the form ``{prefix}_{random}``.
    """
    return f"{prefix}_{secrets.token_urlsafe(24)}"


def mask_auth_code(code: str, visible: int = 4) -> str:
    """Mask a code for listing, keeping the prefix and the last characters.

    Example::

        >>> mask_auth_code("tupleap_AbCdEfGhIjKl")
        'tupleap_…IjKl'
    """
    prefix, sep, rest = code.partition("_")
    if not sep:
        prefix, rest = "", code
    if len(rest) <= visible:
        return f"{prefix}{sep}…"
    return f"{prefix}{sep}…{rest[-visible:]}"


def truncate_to_ms(value: datetime) -> datetime:
    """Drop sub-millisecond precision to match the stored timestamp resolution."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)
