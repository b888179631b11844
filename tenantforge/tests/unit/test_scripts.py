from __future__ import annotations

import json
from pathlib import Path

import pytest

from scripts.assemble_plan import _parse_overrides
from scripts.seed_components import load_catalog


def test_parse_overrides() -> None:
    assert _parse_overrides(["loyalty_program=false", "reports=TRUE"]) == {
        "loyalty_program": False,
        "reports": True,
    }
    with pytest.raises(ValueError):
        _parse_overrides(["reports=maybe"])
    with pytest.raises(ValueError):
        _parse_overrides(["=true"])


def test_load_catalog_accepts_wrapped_and_bare_lists(tmp_path: Path) -> None:
    entries = [
        {
            "component_name": "core_platform",
            "component_display_name": "Core Platform",
            "component_type": "core",
            "deployment_order": 1,
            "config_template": {"required_vars": ["BUSINESS_NAME"]},
        },
        {"component_name": "loyalty_program", "component_type": "addon"},
    ]
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"components": entries}), encoding="utf-8")
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps(entries), encoding="utf-8")

    components = load_catalog(wrapped)

    assert [c.component_name for c in components] == ["core_platform", "loyalty_program"]
    assert components[0].display_name == "Core Platform"
    assert components[0].config_template.required_vars == ("BUSINESS_NAME",)
    assert components[1].deployment_order is None
    assert load_catalog(bare) == components
