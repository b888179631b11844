from __future__ import annotations

import pytest

from tenantforge.core.errors import DependencyCycleError, RegistryUnavailableError, StoreError
from tenantforge.services.assembly.resolver import resolve_dependencies, summarize_resolution
from tenantforge.tests.utils.factories import make_component


def _lookup(*components):
    registry = {component.component_name: component for component in components}
    calls: list[str] = []

    async def lookup(name: str):
        calls.append(name)
        return registry.get(name)

    lookup.calls = calls  # type: ignore[attr-defined]
    return lookup


def _names(resolved) -> list[str]:
    return [item.component_name for item in resolved]


@pytest.mark.asyncio
async def test_transitive_dependencies_are_pulled_from_registry() -> None:
    booking = make_component("booking", "plan_feature", deployment_order=30, dependencies=["calendar"])
    calendar = make_component("calendar", "core", deployment_order=20, dependencies=["notifications"])
    notifications = make_component("notifications", "core", deployment_order=10)

    resolved = await resolve_dependencies([booking], _lookup(calendar, notifications))

    assert _names(resolved) == ["notifications", "calendar", "booking"]
    assert all(item.dependencies_met for item in resolved)
    by_name = {item.component_name: item for item in resolved}
    assert by_name["booking"].resolved_dependencies == ("calendar",)


@pytest.mark.asyncio
async def test_missing_dependency_is_recorded_not_dropped() -> None:
    loyalty = make_component("loyalty_program", "addon", dependencies=["points_engine", "crm"])
    crm = make_component("crm", "core", deployment_order=5)

    resolved = await resolve_dependencies([loyalty], _lookup(crm))

    by_name = {item.component_name: item for item in resolved}
    assert set(by_name) == {"loyalty_program", "crm"}
    assert by_name["loyalty_program"].missing_dependencies == ("points_engine",)
    assert by_name["loyalty_program"].resolved_dependencies == ("crm",)
    assert by_name["loyalty_program"].dependencies_met is False


@pytest.mark.asyncio
async def test_inactive_dependency_counts_as_missing() -> None:
    feature = make_component("reports", "plan_feature", dependencies=["legacy_export"])
    legacy = make_component("legacy_export", "core", is_deprecated=True)

    resolved = await resolve_dependencies([feature], _lookup(legacy))

    assert _names(resolved) == ["reports"]
    assert resolved[0].missing_dependencies == ("legacy_export",)


@pytest.mark.asyncio
async def test_two_component_cycle_is_fatal() -> None:
    a = make_component("a", "core", dependencies=["b"])
    b = make_component("b", "core", dependencies=["a"])

    with pytest.raises(DependencyCycleError) as excinfo:
        await resolve_dependencies([a], _lookup(b))

    assert excinfo.value.component_name == "a"
    assert excinfo.value.chain == ["a", "b"]
    assert "a -> b -> a" in str(excinfo.value)


@pytest.mark.asyncio
async def test_self_dependency_is_a_cycle() -> None:
    loop = make_component("loop", "core", dependencies=["loop"])
    with pytest.raises(DependencyCycleError) as excinfo:
        await resolve_dependencies([loop], _lookup())
    assert excinfo.value.component_name == "loop"


@pytest.mark.asyncio
async def test_shared_dependency_is_not_a_cycle() -> None:
    top = make_component("top", "core", deployment_order=4, dependencies=["left", "right"])
    left = make_component("left", "core", deployment_order=2, dependencies=["base"])
    right = make_component("right", "core", deployment_order=3, dependencies=["base"])
    base = make_component("base", "core", deployment_order=1)
    lookup = _lookup(left, right, base)

    resolved = await resolve_dependencies([top], lookup)

    assert _names(resolved) == ["base", "left", "right", "top"]
    assert lookup.calls.count("base") == 1


@pytest.mark.asyncio
async def test_resolution_is_idempotent() -> None:
    booking = make_component("booking", "plan_feature", deployment_order=30, dependencies=["calendar", "ghost"])
    calendar = make_component("calendar", "core", deployment_order=20)
    lookup = _lookup(calendar)

    first = await resolve_dependencies([booking], lookup)
    second = await resolve_dependencies([item.component for item in first], lookup)

    assert second == first


@pytest.mark.asyncio
async def test_output_sorted_by_deployment_order_with_unordered_last() -> None:
    components = [
        make_component("unordered_b", "core"),
        make_component("late", "core", deployment_order=50),
        make_component("unordered_a", "core"),
        make_component("early", "core", deployment_order=1),
    ]

    resolved = await resolve_dependencies(components, _lookup())

    # Unordered components share the fallback order and keep first-seen order.
    assert _names(resolved) == ["early", "late", "unordered_b", "unordered_a"]


@pytest.mark.asyncio
async def test_registry_failure_mid_resolution_is_fatal() -> None:
    async def broken_lookup(name: str):
        raise StoreError("connection reset")

    feature = make_component("reports", "plan_feature", dependencies=["exports"])
    with pytest.raises(RegistryUnavailableError):
        await resolve_dependencies([feature], broken_lookup)


@pytest.mark.asyncio
async def test_empty_input_resolves_to_empty_list() -> None:
    assert await resolve_dependencies([], _lookup()) == []


@pytest.mark.asyncio
async def test_summarize_resolution_counts_types_and_missing() -> None:
    resolved = await resolve_dependencies(
        [
            make_component("core_platform", "core", deployment_order=1),
            make_component("loyalty_program", "addon", deployment_order=2, dependencies=["points_engine"]),
        ],
        _lookup(),
    )
    summary = summarize_resolution(resolved)
    assert summary.total == 2
    assert summary.by_type == {"core": 1, "addon": 1}
    assert summary.missing == {"loyalty_program": ["points_engine"]}
    assert summary.missing_count == 1


@pytest.mark.asyncio
async def test_unordered_components_sort_after_high_explicit_orders() -> None:
    unordered = make_component("unordered", "addon")
    late = make_component("late", "addon", deployment_order=150)
    exactly_default = make_component("exactly_default", "addon", deployment_order=100)

    resolved = await resolve_dependencies([unordered, late, exactly_default], _lookup())

    assert _names(resolved) == ["exactly_default", "late", "unordered"]
