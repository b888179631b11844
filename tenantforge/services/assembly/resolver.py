from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
import logging
from typing import Awaitable, Callable, Iterable

from tenantforge.core.errors import DependencyCycleError, RegistryUnavailableError, StoreError
from tenantforge.domain.components import Component, ResolvedComponent


logger = logging.getLogger(__name__)

ComponentLookup = Callable[[str], Awaitable[Component | None]]


@dataclass
class _ResolutionArena:
    """State owned by a single resolve_dependencies call.

    ``working`` holds every component known to this resolution, ``stack`` the
    names currently being expanded (in depth order) and ``resolved`` the memo
    of finished components. Nothing here outlives the call.
    """

    lookup: ComponentLookup
    working: dict[str, Component] = field(default_factory=dict)
    first_seen: dict[str, int] = field(default_factory=dict)
    stack: list[str] = field(default_factory=list)
    resolved: dict[str, ResolvedComponent] = field(default_factory=dict)
    absent: set[str] = field(default_factory=set)

    def add(self, component: Component) -> None:
        name = component.component_name
        if name in self.working:
            return
        self.working[name] = component
        self.first_seen[name] = len(self.first_seen)

    async def fetch(self, name: str) -> Component | None:
        if name in self.working:
            return self.working[name]
        if name in self.absent:
            return None
        try:
            component = await self.lookup(name)
        except StoreError as exc:
            raise RegistryUnavailableError(f"Component registry unavailable: {exc}") from exc
        if component is None or not component.is_available:
            self.absent.add(name)
            return None
        self.add(component)
        return component

    async def resolve(self, component: Component) -> ResolvedComponent:
        name = component.component_name
        memo = self.resolved.get(name)
        if memo is not None:
            return memo
        if name in self.stack:
            chain = self.stack[self.stack.index(name):]
            raise DependencyCycleError(name, chain)

        self.stack.append(name)
        satisfied: list[str] = []
        missing: list[str] = []
        for dependency in dict.fromkeys(component.dependencies):
            target = await self.fetch(dependency)
            if target is None:
                missing.append(dependency)
                continue
            await self.resolve(target)
            satisfied.append(dependency)
        self.stack.pop()

        result = ResolvedComponent(
            component=component,
            resolved_dependencies=tuple(satisfied),
            missing_dependencies=tuple(missing),
        )
        self.resolved[name] = result
        return result


async def resolve_dependencies(
    components: Iterable[Component],
    lookup: ComponentLookup,
) -> list[ResolvedComponent]:
    """Expand ``components`` with every transitive dependency, ordered for deployment.

    Missing dependencies are recorded on the dependent component and logged; the
    component stays in the output. A dependency chain that loops back to a
    component still being expanded raises ``DependencyCycleError``.
    """
    arena = _ResolutionArena(lookup=lookup)
    initial = list(components)
    for component in initial:
        arena.add(component)
    for component in initial:
        await arena.resolve(arena.working[component.component_name])

    ordered = sorted(
        arena.resolved.values(),
        key=lambda item: (
            item.component.deployment_order is None,
            item.component.sort_order,
            arena.first_seen[item.component_name],
        ),
    )
    for item in ordered:
        if item.missing_dependencies:
            logger.warning(
                "component_dependencies_missing component=%s missing=%s",
                item.component_name,
                ",".join(item.missing_dependencies),
            )
    return ordered


@dataclass(frozen=True)
class ResolutionSummary:
    total: int
    by_type: dict[str, int]
    missing: dict[str, list[str]]

    @property
    def missing_count(self) -> int:
        return len(self.missing)


def summarize_resolution(resolved: Iterable[ResolvedComponent]) -> ResolutionSummary:
    items = list(resolved)
    return ResolutionSummary(
        total=len(items),
        by_type=dict(Counter(item.component.component_type for item in items)),
        missing={
            item.component_name: list(item.missing_dependencies)
            for item in items
            if item.missing_dependencies
        },
    )
