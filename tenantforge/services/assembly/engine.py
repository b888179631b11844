from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any
from uuid import uuid4

from tenantforge.core.config import get_settings
from tenantforge.core.errors import StoreError
from tenantforge.domain.components import ClientConfig, ResolvedComponent
from tenantforge.domain.models import DeploymentLog, FeatureFlag
from tenantforge.providers.store.base import RegistryStore
from tenantforge.services.assembly.plan import DeploymentPlan, generate_deployment_plan
from tenantforge.services.assembly.resolver import resolve_dependencies
from tenantforge.services.assembly.selector import load_and_select


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssemblyRequest:
    config: ClientConfig
    request_id: str | None = None
    # Already resolved and ordered components skip selection and resolution.
    components: tuple[ResolvedComponent, ...] | None = None
    context: dict[str, Any] = field(default_factory=dict)
    persist: bool = False
    proposal_id: str | None = None
    subscription_id: str | None = None


@dataclass(frozen=True)
class AssemblyResult:
    plan: DeploymentPlan
    components_selected: int
    components_resolved: int
    missing_dependency_count: int
    persisted: bool = False
    deployment_log_id: str | None = None
    persistence_error: str | None = None

    @property
    def manual_steps_count(self) -> int:
        return self.plan.manual_steps_count

    @property
    def estimated_total_minutes(self) -> int:
        return self.plan.estimated_total_minutes

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan.to_dict(),
            "components_selected": self.components_selected,
            "components_resolved": self.components_resolved,
            "missing_dependency_count": self.missing_dependency_count,
            "manual_steps_count": self.manual_steps_count,
            "estimated_total_minutes": self.estimated_total_minutes,
            "persisted": self.persisted,
            "deployment_log_id": self.deployment_log_id,
            "persistence_error": self.persistence_error,
        }


async def _persist_plan(
    store: RegistryStore,
    request: AssemblyRequest,
    plan: DeploymentPlan,
) -> str:
    log = await store.create_deployment_log(
        DeploymentLog(
            id=uuid4().hex,
            client_id=request.config.client_id,
            proposal_id=request.proposal_id,
            subscription_id=request.subscription_id,
            deployment_plan=plan.to_dict(),
            status="pending",
            progress_percentage=0,
            components_count=len(plan.deployment_steps),
            components_completed=0,
            estimated_duration_minutes=plan.estimated_total_minutes,
            metadata_json={"request_id": plan.request_id},
        )
    )
    flags = [
        FeatureFlag(
            id=uuid4().hex,
            client_id=request.config.client_id,
            feature_key=flag["feature_key"],
            is_enabled=flag["is_enabled"],
            source_component=flag["source_component"],
            override_reason=flag["override_reason"],
        )
        for flag in plan.feature_flags
    ]
    if flags:
        await store.upsert_feature_flags(flags)
    return log.id


async def assemble_deployment_plan(store: RegistryStore, request: AssemblyRequest) -> AssemblyResult:
    """Select, resolve and plan the components for one client.

    Registry failures surface as ``RegistryUnavailableError`` and dependency
    cycles as ``DependencyCycleError``. Persisting the plan is best-effort.
    """
    settings = get_settings()
    config = request.config
    request_id = request.request_id or uuid4().hex
    context = dict(request.context)
    if request.proposal_id:
        context.setdefault("proposal_id", request.proposal_id)
    if request.subscription_id:
        context.setdefault("subscription_id", request.subscription_id)

    if request.components is not None:
        resolved = list(request.components)
        selected_count = len(resolved)
    else:
        selected = await load_and_select(store, config)
        selected_count = len(selected)
        resolved = await resolve_dependencies(selected, store.find_component_by_name)

    plan = generate_deployment_plan(
        resolved,
        config,
        request_id=request_id,
        context=context,
        manual_threshold_minutes=settings.manual_setup_threshold_minutes,
        version=settings.deployment_plan_version,
    )
    missing_count = sum(1 for item in resolved if item.missing_dependencies)
    logger.info(
        "deployment_plan_generated client_id=%s request_id=%s steps=%s manual=%s minutes=%s",
        config.client_id,
        request_id,
        len(plan.deployment_steps),
        plan.manual_steps_count,
        plan.estimated_total_minutes,
    )

    persisted = False
    log_id: str | None = None
    persistence_error: str | None = None
    if request.persist:
        try:
            log_id = await _persist_plan(store, request, plan)
            persisted = True
        except StoreError as exc:
            # The plan is still returned; the caller decides whether to retry the write.
            logger.warning(
                "deployment_plan_persist_failed client_id=%s request_id=%s",
                config.client_id,
                request_id,
                exc_info=exc,
            )
            persistence_error = str(exc)

    return AssemblyResult(
        plan=plan,
        components_selected=selected_count,
        components_resolved=len(resolved),
        missing_dependency_count=missing_count,
        persisted=persisted,
        deployment_log_id=log_id,
        persistence_error=persistence_error,
    )
