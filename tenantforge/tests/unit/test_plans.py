from __future__ import annotations

import pytest

from tenantforge.domain.plans import PLAN_TIERS, is_known_plan, plan_index, plan_satisfies


def test_plan_tiers_are_ordered_lowest_first() -> None:
    assert PLAN_TIERS == ("starter", "essentials", "growth", "scale")
    assert [plan_index(plan) for plan in PLAN_TIERS] == [0, 1, 2, 3]


def test_plan_index_normalizes_case_and_whitespace() -> None:
    assert plan_index("  Growth ") == 2
    assert plan_index("enterprise") is None
    assert plan_index(None) is None
    assert is_known_plan("SCALE") is True
    assert is_known_plan("") is False


def test_missing_minimum_is_always_satisfied() -> None:
    assert plan_satisfies("starter", None) is True
    assert plan_satisfies("unknown", None) is True


def test_unknown_plans_never_satisfy_a_minimum() -> None:
    assert plan_satisfies("enterprise", "starter") is False
    assert plan_satisfies("scale", "platinum") is False


@pytest.mark.parametrize("client_plan", PLAN_TIERS)
@pytest.mark.parametrize("min_plan", PLAN_TIERS)
def test_plan_satisfies_matches_tier_order(client_plan: str, min_plan: str) -> None:
    expected = PLAN_TIERS.index(client_plan) >= PLAN_TIERS.index(min_plan)
    assert plan_satisfies(client_plan, min_plan) is expected
