from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable

from tenantforge.core.errors import RegistryUnavailableError, StoreError
from tenantforge.domain.components import ALL_VERTICALS, ClientConfig, Component
from tenantforge.domain.plans import plan_satisfies
from tenantforge.providers.store.base import RegistryStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionDecision:
    component_name: str
    included: bool
    reason: str


def _vertical_matches(component: Component, vertical: str) -> bool:
    if not component.vertical_applicable:
        return True
    return vertical in component.vertical_applicable or ALL_VERTICALS in component.vertical_applicable


def _legacy_system_matches(component: Component, legacy_system: str | None) -> bool:
    # Either name may contain the other, e.g. "soft_restaurant" vs "SoftRestaurant 10".
    if not legacy_system:
        return False
    name = component.component_name.lower()
    legacy = legacy_system.lower()
    return name in legacy or legacy in name


def _type_decision(component: Component, config: ClientConfig) -> tuple[bool, str]:
    kind = component.component_type
    if kind == "core":
        return True, "core"
    if kind == "plan_feature":
        if plan_satisfies(config.plan, component.min_plan_required):
            return True, "plan_satisfied"
        return False, "plan_below_minimum"
    if kind == "vertical_module":
        if not _vertical_matches(component, config.vertical):
            return False, "vertical_mismatch"
        if not plan_satisfies(config.plan, component.min_plan_required):
            return False, "plan_below_minimum"
        return True, "vertical_match"
    if kind == "addon":
        if component.component_name in config.addons:
            return True, "addon_requested"
        return False, "addon_not_requested"
    if kind == "integration":
        if _legacy_system_matches(component, config.legacy_system):
            return True, "legacy_system_match"
        return False, "legacy_system_mismatch"
    return False, "unknown_type"


def explain_selection(components: Iterable[Component], config: ClientConfig) -> list[SelectionDecision]:
    # Overrides run last and win over every type rule in both directions.
    decisions: list[SelectionDecision] = []
    for component in components:
        included, reason = _type_decision(component, config)
        override = config.feature_overrides.get(component.component_name)
        if override is False:
            included, reason = False, "override_off"
        elif override is True:
            included, reason = True, "override_on"
        decisions.append(SelectionDecision(component.component_name, included, reason))
    return decisions


def select_components(components: Iterable[Component], config: ClientConfig) -> list[Component]:
    # Preserve registry order (ascending deployment_order); never re-sort here.
    ordered = list(components)
    decisions = explain_selection(ordered, config)
    return [component for component, decision in zip(ordered, decisions) if decision.included]


async def load_and_select(store: RegistryStore, config: ClientConfig) -> list[Component]:
    try:
        registry = await store.list_active_components()
    except StoreError as exc:
        raise RegistryUnavailableError(f"Component registry unavailable: {exc}") from exc
    selected = select_components(registry, config)
    logger.info(
        "components_selected client_id=%s registry=%s selected=%s",
        config.client_id,
        len(registry),
        len(selected),
    )
    return selected
