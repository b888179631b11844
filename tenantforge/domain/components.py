from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping


ComponentType = Literal["core", "plan_feature", "vertical_module", "addon", "integration"]

COMPONENT_TYPES: tuple[str, ...] = ("core", "plan_feature", "vertical_module", "addon", "integration")

# Components without an explicit order deploy after every ordered component.
DEFAULT_DEPLOYMENT_ORDER = 100
DEFAULT_SETUP_MINUTES = 5
ALL_VERTICALS = "all"


@dataclass(frozen=True)
class ConfigTemplate:
    required_vars: tuple[str, ...] = ()
    optional_vars: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ConfigTemplate":
        data = data or {}
        return cls(
            required_vars=tuple(str(item) for item in data.get("required_vars") or ()),
            optional_vars=tuple(str(item) for item in data.get("optional_vars") or ()),
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {"required_vars": list(self.required_vars), "optional_vars": list(self.optional_vars)}


@dataclass(frozen=True)
class Component:
    """A catalog entry describing one installable feature.

    Records are immutable snapshots of the registry; the assembly engine never
    mutates them. ``deployment_order`` is a plain sort key.
    """

    component_name: str
    component_type: str
    display_name: str = ""
    description: str = ""
    id: str | None = None
    vertical_applicable: tuple[str, ...] = ()
    min_plan_required: str | None = None
    workflow_file: str | None = None
    dependencies: tuple[str, ...] = ()
    config_template: ConfigTemplate = field(default_factory=ConfigTemplate)
    feature_flags: tuple[str, ...] = ()
    dashboard_widgets: tuple[dict[str, Any], ...] = ()
    estimated_setup_minutes: int = DEFAULT_SETUP_MINUTES
    setup_instructions: str | None = None
    deployment_order: int | None = None
    is_active: bool = True
    is_deprecated: bool = False

    @property
    def sort_order(self) -> int:
        return self.deployment_order if self.deployment_order is not None else DEFAULT_DEPLOYMENT_ORDER

    @property
    def is_available(self) -> bool:
        return self.is_active and not self.is_deprecated

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Component":
        # Accept registry rows and JSON catalog entries with the same field names.
        name = str(data["component_name"])
        minutes = data.get("estimated_setup_minutes")
        order = data.get("deployment_order")
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            component_name=name,
            component_type=str(data["component_type"]),
            display_name=str(data.get("component_display_name") or data.get("display_name") or name),
            description=str(data.get("component_description") or data.get("description") or ""),
            vertical_applicable=tuple(str(v) for v in data.get("vertical_applicable") or ()),
            min_plan_required=data.get("min_plan_required") or None,
            workflow_file=data.get("workflow_file") or None,
            dependencies=tuple(str(dep) for dep in data.get("dependencies") or ()),
            config_template=ConfigTemplate.from_mapping(data.get("config_template")),
            feature_flags=tuple(str(flag) for flag in data.get("feature_flags") or ()),
            dashboard_widgets=tuple(dict(widget) for widget in data.get("dashboard_widgets") or ()),
            estimated_setup_minutes=int(minutes) if minutes is not None else DEFAULT_SETUP_MINUTES,
            setup_instructions=data.get("setup_instructions") or None,
            deployment_order=int(order) if order is not None else None,
            is_active=bool(data.get("is_active", True)),
            is_deprecated=bool(data.get("is_deprecated", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "component_name": self.component_name,
            "component_display_name": self.display_name,
            "component_description": self.description,
            "component_type": self.component_type,
            "vertical_applicable": list(self.vertical_applicable),
            "min_plan_required": self.min_plan_required,
            "workflow_file": self.workflow_file,
            "dependencies": list(self.dependencies),
            "config_template": self.config_template.to_dict(),
            "feature_flags": list(self.feature_flags),
            "dashboard_widgets": [dict(widget) for widget in self.dashboard_widgets],
            "estimated_setup_minutes": self.estimated_setup_minutes,
            "setup_instructions": self.setup_instructions,
            "deployment_order": self.deployment_order,
            "is_active": self.is_active,
            "is_deprecated": self.is_deprecated,
        }


@dataclass(frozen=True)
class ClientConfig:
    client_id: str
    vertical: str
    plan: str
    addons: frozenset[str] = frozenset()
    legacy_system: str | None = None
    custom_requirements: tuple[str, ...] = ()
    feature_overrides: Mapping[str, bool] = field(default_factory=dict)
    branches_count: int | None = None
    client_name: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientConfig":
        branches = data.get("branches_count")
        return cls(
            client_id=str(data["client_id"]),
            vertical=str(data["vertical"]),
            plan=str(data["plan"]),
            addons=frozenset(str(addon) for addon in data.get("addons") or ()),
            legacy_system=data.get("legacy_system") or None,
            custom_requirements=tuple(str(item) for item in data.get("custom_requirements") or ()),
            feature_overrides={str(k): bool(v) for k, v in (data.get("feature_overrides") or {}).items()},
            branches_count=int(branches) if branches is not None else None,
            client_name=data.get("client_name") or None,
        )


@dataclass(frozen=True)
class ResolvedComponent:
    component: Component
    resolved_dependencies: tuple[str, ...] = ()
    missing_dependencies: tuple[str, ...] = ()

    @property
    def component_name(self) -> str:
        return self.component.component_name

    @property
    def dependencies_met(self) -> bool:
        return not self.missing_dependencies
