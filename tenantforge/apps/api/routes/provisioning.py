from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, Field

from tenantforge.apps.api.deps import get_identity, get_lock, get_store
from tenantforge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantforge.apps.api.response import SuccessEnvelope, success_response
from tenantforge.providers.identity.base import IdentityProvider
from tenantforge.providers.store.base import RegistryStore
from tenantforge.services.provisioning.locks import ProvisioningLock
from tenantforge.services.provisioning.orchestrator import ProvisionParams, ProvisionResult, provision_tenant


router = APIRouter(prefix="/provisioning", tags=["provisioning"], responses=DEFAULT_ERROR_RESPONSES)


class ProvisionTenantRequest(BaseModel):
    client_id: str
    customer_email: str
    customer_name: str | None = None
    customer_phone: str | None = None
    vertical: str
    plan: str
    branches_count: int = Field(default=1, ge=1)
    subscription_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProvisionTenantResponse(BaseModel):
    success: bool
    tenant_id: str | None = None
    tenant_slug: str | None = None
    branch_id: str | None = None
    user_id: str | None = None
    staff_id: str | None = None
    temp_password: str | None = None
    message: str | None = None
    already_provisioned: bool = False
    details: dict[str, Any] = Field(default_factory=dict)


def _failure(result: ProvisionResult) -> HTTPException:
    # Map the failed step onto a stable HTTP status and error code.
    details = {"step": result.step, **result.details}
    if result.step == "validate_input":
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "VALIDATION_ERROR", "message": result.error, **details},
        )
    if result.step == "acquire_lock":
        if result.error == "Provisioning already in progress":
            return HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "PROVISIONING_IN_PROGRESS", "message": result.error, **details},
            )
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "PROVISIONING_LOCK_UNAVAILABLE", "message": result.error, **details},
        )
    if result.step == "resolve_client" and result.error == "Client not found":
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "CLIENT_NOT_FOUND", "message": result.error, **details},
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": "PROVISIONING_FAILED", "message": result.error or "Provisioning failed", **details},
    )


@router.post(
    "/tenants",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessEnvelope[ProvisionTenantResponse] | ProvisionTenantResponse,
)
async def create_tenant(
    payload: ProvisionTenantRequest,
    request: Request,
    response: Response,
    store: RegistryStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity),
    lock: ProvisioningLock | None = Depends(get_lock),
) -> dict:
    result = await provision_tenant(
        ProvisionParams(**payload.model_dump()),
        store=store,
        identity=identity,
        lock=lock,
    )
    if not result.success:
        raise _failure(result)
    if result.already_provisioned:
        response.status_code = status.HTTP_200_OK
    data = ProvisionTenantResponse(
        success=True,
        tenant_id=result.tenant_id,
        tenant_slug=result.tenant_slug,
        branch_id=result.branch_id,
        user_id=result.user_id,
        staff_id=result.staff_id,
        temp_password=result.temp_password,
        message=result.message,
        already_provisioned=result.already_provisioned,
        details=result.details,
    )
    return success_response(request=request, data=data.model_dump())
