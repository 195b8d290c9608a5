"""FastAPI dependency injection."""

from __future__ import annotations

from typing import cast

from fastapi import Depends, Header, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from gatekeeper.auth.admin import AdminService, verify_admin_token
from gatekeeper.auth.context import Allow, DenialReason
from gatekeeper.auth.gatekeeper import Gatekeeper
from gatekeeper.config import Settings, get_settings, settings
from gatekeeper.errors import AdminUnauthorizedError

__all__ = ["get_admin_service", "get_gatekeeper", "require_admin", "require_auth_code"]

auth_code_header = APIKeyHeader(name=settings.auth_code_header, auto_error=False)


async def get_gatekeeper(request: Request) -> Gatekeeper:
    """Retrieve Gatekeeper from app state.

    Initialized during lifespan startup.
    """
    return cast(Gatekeeper, request.app.state.gatekeeper)


async def get_admin_service(request: Request) -> AdminService:
    """Retrieve AdminService from app state.

    Initialized during lifespan startup.
    """
    return cast(AdminService, request.app.state.admin_service)


_gatekeeper_dep = Depends(get_gatekeeper)
_settings_dep = Depends(get_settings)


async def require_auth_code(
    request: Request,
    code: str | None = Security(auth_code_header),
    gatekeeper: Gatekeeper = _gatekeeper_dep,
) -> Allow:
    """Authorize the request by its auth code header.

    Raises:
        HTTPException 401: missing, unknown, inactive or expired code.
        HTTPException 503: store unreachable (fail-closed).
    """
    decision = await gatekeeper.authorize(code)
    if isinstance(decision, Allow):
        request.state.tenant_id = decision.tenant_id
        return decision
    status_code = 503 if decision.reason == DenialReason.STORE_UNAVAILABLE else 401
    raise HTTPException(status_code=status_code, detail=str(decision.reason))


async def require_admin(
    authorization: str | None = Header(default=None),
    app_settings: Settings = _settings_dep,
) -> None:
    """Check the admin bearer token before any admin logic runs.

    Raises:
        HTTPException 401: missing or wrong admin token.
    """
    expected = app_settings.admin_token
    try:
        verify_admin_token(
            authorization,
            expected.get_secret_value() if expected is not None else None,
        )
    except AdminUnauthorizedError as exc:
        raise HTTPException(
            status_code=401,
            detail=f"admin_unauthorized: {exc}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
