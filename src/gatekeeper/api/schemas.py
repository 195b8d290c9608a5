"""Request/response schemas for the API layer."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# --- Admin: generate ---


class GenerateAuthCodeRequest(BaseModel):
    """Request body for ``POST /admin/auth/generate``."""

    tenant_id: str
    username: str
    expires_at: datetime | None = Field(
        default=None,
        description="Absolute expiry (UTC if no offset given). May be in the past.",
    )


class GenerateAuthCodeResponse(BaseModel):
    """Issued code. The only response that carries the plaintext code."""

    model_config = ConfigDict(from_attributes=True)

    auth_code: str
    tenant_id: str
    username: str
    created_at: datetime
    expires_at: datetime | None


# --- Admin: list ---


class ListAuthCodesRequest(BaseModel):
    """Request body for ``POST /admin/auth``. All filters optional."""

    tenant_id: str | None = None
    username: str | None = None
    limit: int | None = Field(default=None, ge=1, le=10_000)


class AuthCodeSummaryResponse(BaseModel):
    """Listed code with usage as of the last successful flush.

    ``auth_code`` is masked, e.g. ``tupleap_…x9Qz``.
    """

    model_config = ConfigDict(from_attributes=True)

    auth_code: str
    tenant_id: str
    username: str
    created_at: datetime
    is_active: bool
    usage_count: int
    created_by: str
    expires_at: datetime | None


# --- Admin: deactivate ---


class DeactivateAuthCodeRequest(BaseModel):
    """Request body for ``POST /admin/auth/deactivate``."""

    auth_code: str


class DeactivateHolderRequest(BaseModel):
    """Request body for ``POST /admin/auth/deactivate-holder``."""

    tenant_id: str
    username: str


# --- Request path ---


class VerifyResponse(BaseModel):
    """Identity resolved from a valid auth code."""

    tenant_id: str
    username: str
