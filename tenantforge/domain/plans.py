from __future__ import annotations


# Ordered lowest to highest; every tier comparison derives from this tuple.
PLAN_TIERS: tuple[str, ...] = ("starter", "essentials", "growth", "scale")

_PLAN_INDEX: dict[str, int] = {plan: index for index, plan in enumerate(PLAN_TIERS)}


def normalize_plan(plan: str | None) -> str | None:
    if plan is None:
        return None
    return plan.strip().lower() or None


def plan_index(plan: str | None) -> int | None:
    # Return the tier position, or None for plans outside the hierarchy.
    normalized = normalize_plan(plan)
    if normalized is None:
        return None
    return _PLAN_INDEX.get(normalized)


def is_known_plan(plan: str | None) -> bool:
    return plan_index(plan) is not None


def plan_satisfies(client_plan: str | None, min_plan: str | None) -> bool:
    # A missing minimum is always met; unknown tiers on either side never are.
    if normalize_plan(min_plan) is None:
        return True
    client_idx = plan_index(client_plan)
    min_idx = plan_index(min_plan)
    if client_idx is None or min_idx is None:
        return False
    return client_idx >= min_idx
