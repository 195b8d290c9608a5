"""Admin endpoints for auth code issuance and inspection.

Endpoints:

- ``POST /admin/auth/generate``   Issue a new auth code
- ``POST /admin/auth``            List codes with usage (masked)
- ``POST /admin/auth/deactivate`` Deactivate a code
- ``POST /admin/auth/deactivate-holder`` Deactivate every code of a tenant user

Every endpoint requires ``Authorization: Bearer <admin token>``. The
token is checked by a router dependency before the request body is
parsed, so an unauthenticated call is rejected whatever its body holds.
"""

from __future__ import annotations

from typing import Annotated, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ValidationError

from gatekeeper.api.deps import get_admin_service, require_admin
from gatekeeper.api.schemas import (
    AuthCodeSummaryResponse,
    DeactivateAuthCodeRequest,
    DeactivateHolderRequest,
    GenerateAuthCodeRequest,
    GenerateAuthCodeResponse,
    ListAuthCodesRequest,
)
from gatekeeper.auth.admin import AdminService


router = APIRouter(
    prefix="/admin/auth",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)

AdminDep = Annotated[AdminService, Depends(get_admin_service)]

_M = TypeVar("_M", bound=BaseModel)


async def _parse_body(request: Request, model: type[_M]) -> _M:
    """Validate the JSON body against ``model``; an empty body counts as ``{}``.

    Raises:
        HTTPException 422: body is not JSON or fails validation.
    """
    raw = await request.body()
    try:
        return model.model_validate_json(raw.strip() or b"{}")
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(
                include_url=False, include_context=False, include_input=False
            ),
        ) from exc


@router.post(
    "/generate",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": GenerateAuthCodeRequest.model_json_schema()
                }
            },
            "required": True,
        }
    },
)
async def generate_auth_code(
    request: Request,
    service: AdminDep,
) -> GenerateAuthCodeResponse:
    """Issue a new auth code. The plaintext code is returned only here."""
    body = await _parse_body(request, GenerateAuthCodeRequest)
    record = await service.generate(
        tenant_id=body.tenant_id,
        username=body.username,
        expires_at=body.expires_at,
    )
    return GenerateAuthCodeResponse.model_validate(record)


@router.post(
    "",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": ListAuthCodesRequest.model_json_schema()}
            },
        }
    },
)
async def list_auth_codes(
    request: Request,
    service: AdminDep,
) -> list[AuthCodeSummaryResponse]:
    """List auth codes ordered by (tenant_id, auth_code).

    Reads straight from the store, so ``usage_count`` may lag live usage
    by up to one accumulation window.
    """
    body = await _parse_body(request, ListAuthCodesRequest)
    records = await service.list_codes(
        body.tenant_id,
        username=body.username,
        limit=body.limit,
    )
    return [AuthCodeSummaryResponse.model_validate(r) for r in records]


@router.post(
    "/deactivate",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": DeactivateAuthCodeRequest.model_json_schema()
                }
            },
            "required": True,
        }
    },
)
async def deactivate_auth_code(
    request: Request,
    service: AdminDep,
) -> AuthCodeSummaryResponse:
    """Deactivate a code. Other instances stop accepting it within one cache TTL."""
    body = await _parse_body(request, DeactivateAuthCodeRequest)
    record = await service.deactivate(body.auth_code)
    return AuthCodeSummaryResponse.model_validate(record)


@router.post(
    "/deactivate-holder",
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": DeactivateHolderRequest.model_json_schema()
                }
            },
            "required": True,
        }
    },
)
async def deactivate_holder(
    request: Request,
    service: AdminDep,
) -> list[AuthCodeSummaryResponse]:
    """Deactivate every code of one tenant user, without the plaintext code."""
    body = await _parse_body(request, DeactivateHolderRequest)
    records = await service.deactivate_holder(body.tenant_id, body.username)
    return [AuthCodeSummaryResponse.model_validate(r) for r in records]
