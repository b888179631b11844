from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from tenantforge.apps.api.deps import get_store
from tenantforge.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from tenantforge.apps.api.response import SuccessEnvelope, success_response
from tenantforge.domain.components import ClientConfig, Component, ResolvedComponent
from tenantforge.providers.store.base import RegistryStore
from tenantforge.services.assembly.engine import AssemblyRequest, assemble_deployment_plan


router = APIRouter(prefix="/assembly", tags=["assembly"], responses=DEFAULT_ERROR_RESPONSES)


class ClientConfigIn(BaseModel):
    client_id: str
    vertical: str
    plan: str
    addons: list[str] = Field(default_factory=list)
    legacy_system: str | None = None
    custom_requirements: list[str] = Field(default_factory=list)
    feature_overrides: dict[str, bool] = Field(default_factory=dict)
    branches_count: int | None = Field(default=None, ge=1)
    client_name: str | None = None


class AssemblePlanRequest(BaseModel):
    request_id: str | None = None
    client_config: ClientConfigIn
    # Optional pre-resolved components; each entry uses the registry field names.
    components: list[dict[str, Any]] | None = None
    proposal_id: str | None = None
    subscription_id: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    persist: bool = False


class AssemblePlanResponse(BaseModel):
    plan: dict[str, Any]
    components_selected: int
    components_resolved: int
    missing_dependency_count: int
    manual_steps_count: int
    estimated_total_minutes: int
    persisted: bool
    deployment_log_id: str | None = None
    persistence_error: str | None = None


def _resolved_from_payload(entry: dict[str, Any]) -> ResolvedComponent:
    return ResolvedComponent(
        component=Component.from_mapping(entry),
        resolved_dependencies=tuple(entry.get("resolved_dependencies") or ()),
        missing_dependencies=tuple(entry.get("missing_dependencies") or ()),
    )


@router.post("/plans", response_model=SuccessEnvelope[AssemblePlanResponse] | AssemblePlanResponse)
async def create_plan(
    payload: AssemblePlanRequest,
    request: Request,
    store: RegistryStore = Depends(get_store),
) -> dict:
    # Cycle and registry errors surface through the app-level exception handlers.
    components = None
    if payload.components is not None:
        components = tuple(_resolved_from_payload(entry) for entry in payload.components)
    result = await assemble_deployment_plan(
        store,
        AssemblyRequest(
            config=ClientConfig.from_mapping(payload.client_config.model_dump()),
            request_id=payload.request_id,
            components=components,
            context=dict(payload.context),
            persist=payload.persist,
            proposal_id=payload.proposal_id,
            subscription_id=payload.subscription_id,
        ),
    )
    data = AssemblePlanResponse(**result.to_dict())
    return success_response(request=request, data=data.model_dump())
