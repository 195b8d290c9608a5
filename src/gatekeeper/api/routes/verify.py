"""Request-path verification endpoint.

Meant for a reverse proxy's forward-auth hook in front of the inference
gateway: a 200 lets the request through, anything else rejects it before
inference starts. Routes inside this service reuse ``require_auth_code``
directly.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from gatekeeper.api.deps import require_auth_code
from gatekeeper.api.schemas import VerifyResponse
from gatekeeper.auth.context import Allow

router = APIRouter(tags=["auth"])

AuthDep = Annotated[Allow, Depends(require_auth_code)]


@router.get("/auth/verify")
async def verify(identity: AuthDep, response: Response) -> VerifyResponse:
    """Resolve the auth code header to its tenant and user."""
    response.headers["X-Tenant-Id"] = identity.tenant_id
    response.headers["X-Username"] = identity.username
    return VerifyResponse(tenant_id=identity.tenant_id, username=identity.username)
