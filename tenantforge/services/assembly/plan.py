from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from tenantforge.domain.components import ClientConfig, ResolvedComponent


GRID_COLUMNS = 12
WIDGET_WIDTH = 6
WIDGET_HEIGHT = 4
MANUAL_SETUP_THRESHOLD_MINUTES = 15
PLAN_VERSION = "1.0"

# Tables that receive tenant-isolation row level security during deployment.
RLS_TABLES: tuple[str, ...] = (
    "tenants",
    "branches",
    "staff",
    "staff_branches",
    "user_roles",
    "services",
    "faqs",
    "feature_flags",
    "deployment_log",
)

_ACTIONS = {"core": "install", "integration": "connect", "addon": "activate"}


@dataclass(frozen=True)
class DeploymentStep:
    order: int
    component_name: str
    display_name: str
    component_type: str
    action: str
    config: dict[str, Any]
    estimated_minutes: int
    requires_manual: bool
    manual_instructions: str | None
    dependencies: tuple[str, ...]
    dependencies_met: bool
    missing_dependencies: tuple[str, ...]


@dataclass(frozen=True)
class DeploymentPlan:
    version: str
    request_id: str
    client_id: str
    generated_at: str
    summary: dict[str, Any]
    deployment_steps: tuple[DeploymentStep, ...]
    database_setup: dict[str, Any]
    workflows: tuple[dict[str, Any], ...]
    credentials_needed: tuple[dict[str, Any], ...]
    dashboard_widgets: tuple[dict[str, Any], ...]
    feature_flags: tuple[dict[str, Any], ...]
    verification_checks: tuple[dict[str, Any], ...]
    notifications: tuple[dict[str, Any], ...]
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def estimated_total_minutes(self) -> int:
        return int(self.summary["estimated_total_minutes"])

    @property
    def manual_steps_count(self) -> int:
        return int(self.summary["manual_steps_count"])

    def to_dict(self) -> dict[str, Any]:
        # asdict recurses into steps; tuples become lists for JSON storage.
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, tuple):
                payload[key] = list(value)
        for step in payload["deployment_steps"]:
            step["dependencies"] = list(step["dependencies"])
            step["missing_dependencies"] = list(step["missing_dependencies"])
        return payload


def action_for(component_type: str) -> str:
    return _ACTIONS.get(component_type, "configure")


def _client_fields(config: ClientConfig) -> dict[str, Any]:
    return {
        "client_id": config.client_id,
        "vertical": config.vertical,
        "plan": config.plan,
        "branches_count": config.branches_count or 1,
    }


def _build_step(
    order: int,
    item: ResolvedComponent,
    config: ClientConfig,
    manual_threshold: int,
) -> DeploymentStep:
    component = item.component
    requires_manual = component.estimated_setup_minutes > manual_threshold
    return DeploymentStep(
        order=order,
        component_name=component.component_name,
        display_name=component.display_name or component.component_name,
        component_type=component.component_type,
        action=action_for(component.component_type),
        config={**component.config_template.to_dict(), **_client_fields(config)},
        estimated_minutes=component.estimated_setup_minutes,
        requires_manual=requires_manual,
        manual_instructions=component.setup_instructions if requires_manual else None,
        dependencies=tuple(component.dependencies),
        dependencies_met=item.dependencies_met,
        missing_dependencies=tuple(item.missing_dependencies),
    )


def _build_workflows(items: list[ResolvedComponent], config: ClientConfig) -> list[dict[str, Any]]:
    workflows: list[dict[str, Any]] = []
    for item in items:
        component = item.component
        if not component.workflow_file:
            continue
        workflows.append(
            {
                "component": component.component_name,
                "workflow_file": component.workflow_file,
                "activate": True,
                "variables": {
                    "CLIENT_ID": config.client_id,
                    "VERTICAL": config.vertical,
                    "PLAN": config.plan,
                    "BRANCHES_COUNT": str(config.branches_count or 1),
                },
            }
        )
    return workflows


def _build_credentials(items: list[ResolvedComponent]) -> list[dict[str, Any]]:
    return [
        {
            "component": item.component_name,
            "display_name": item.component.display_name or item.component_name,
            "required_vars": list(item.component.config_template.required_vars),
        }
        for item in items
        if item.component.component_type == "integration"
    ]


def layout_widgets(items: Iterable[ResolvedComponent], tenant_prefix: str) -> list[dict[str, Any]]:
    """Pack every declared widget left-to-right into a 12-column grid.

    Widgets are 6 wide and 4 high, so each row holds two; x never reaches 12.
    """
    widgets: list[dict[str, Any]] = []
    x = 0
    y = 0
    for item in items:
        for index, descriptor in enumerate(item.component.dashboard_widgets):
            widget_type = str(descriptor.get("type") or "widget")
            local_id = str(descriptor.get("id") or f"{widget_type}_{index}")
            widgets.append(
                {
                    "widget_id": f"{tenant_prefix}_{item.component_name}_{local_id}",
                    "component": item.component_name,
                    "type": widget_type,
                    "title": descriptor.get("title") or item.component.display_name,
                    "config": dict(descriptor.get("config") or {}),
                    "position": {"x": x, "y": y, "w": WIDGET_WIDTH, "h": WIDGET_HEIGHT},
                }
            )
            x += WIDGET_WIDTH
            if x >= GRID_COLUMNS:
                x = 0
                y += WIDGET_HEIGHT
    return widgets


def _build_feature_flags(items: list[ResolvedComponent], config: ClientConfig) -> list[dict[str, Any]]:
    # First declaring component owns the flag; only an explicit false override disables it.
    flags: dict[str, dict[str, Any]] = {}
    for item in items:
        for flag in item.component.feature_flags:
            if flag in flags:
                continue
            disabled = config.feature_overrides.get(flag) is False
            flags[flag] = {
                "feature_key": flag,
                "is_enabled": not disabled,
                "source_component": item.component_name,
                "override_reason": "client_override" if disabled else None,
            }
    return list(flags.values())


def _build_database_setup() -> dict[str, Any]:
    return {
        "schema": "public",
        "tenant_column": "tenant_id",
        "enable_rls": True,
        "policies": [
            {"table": table, "policy": f"tenant_isolation_{table}", "rls_enabled": True}
            for table in RLS_TABLES
        ],
    }


def _build_verification_checks(
    *,
    steps: int,
    flags_enabled: int,
    workflows: int,
    widgets: int,
) -> list[dict[str, Any]]:
    return [
        {
            "check": "components_deployed",
            "description": f"All {steps} components report a deployed status",
            "expected": steps,
        },
        {
            "check": "feature_flags_active",
            "description": f"{flags_enabled} feature flags are enabled for the client",
            "expected": flags_enabled,
        },
        {
            "check": "workflows_imported",
            "description": f"{workflows} workflows are imported and active",
            "expected": workflows,
        },
        {
            "check": "dashboard_accessible",
            "description": f"Dashboard loads with {widgets} widgets",
            "expected": widgets,
        },
        {
            "check": "rls_enforced",
            "description": "Tenant isolation policies are enabled on every tenant table",
            "expected": True,
        },
    ]


def _build_notifications(
    *,
    config: ClientConfig,
    steps: int,
    manual_steps: int,
    total_minutes: int,
    flags_enabled: int,
) -> list[dict[str, Any]]:
    client_name = config.client_name or config.client_id
    return [
        {
            "notification_type": "deployment_complete",
            "recipient_type": "internal_team",
            "priority": "high" if manual_steps else "normal",
            "subject": f"Deployment plan ready for {client_name}",
            "body": (
                f"{steps} components planned for {client_name} "
                f"({manual_steps} manual steps, about {total_minutes} minutes)."
            ),
            "metadata": {
                "client_id": config.client_id,
                "components_count": steps,
                "manual_steps_count": manual_steps,
                "estimated_total_minutes": total_minutes,
            },
        },
        {
            "notification_type": "deployment_complete",
            "recipient_type": "client",
            "priority": "normal",
            "subject": f"{client_name}, your workspace is being prepared",
            "body": (
                f"We are activating {steps} components and {flags_enabled} features "
                f"for {client_name}. We will let you know as soon as everything is ready."
            ),
            "metadata": {"client_id": config.client_id},
        },
    ]


def generate_deployment_plan(
    resolved: Iterable[ResolvedComponent],
    config: ClientConfig,
    *,
    request_id: str,
    context: dict[str, Any] | None = None,
    generated_at: datetime | None = None,
    manual_threshold_minutes: int = MANUAL_SETUP_THRESHOLD_MINUTES,
    version: str = PLAN_VERSION,
) -> DeploymentPlan:
    """Turn a resolved, ordered component list into a deployment plan.

    Pure transform: step order is the input order, numbered from 1.
    """
    items = list(resolved)
    steps = [
        _build_step(order, item, config, manual_threshold_minutes)
        for order, item in enumerate(items, start=1)
    ]
    workflows = _build_workflows(items, config)
    credentials = _build_credentials(items)
    widgets = layout_widgets(items, config.client_id)
    flags = _build_feature_flags(items, config)

    total_minutes = sum(step.estimated_minutes for step in steps)
    manual_steps = sum(1 for step in steps if step.requires_manual)
    flags_enabled = sum(1 for flag in flags if flag["is_enabled"])
    by_type: dict[str, int] = {}
    for step in steps:
        by_type[step.component_type] = by_type.get(step.component_type, 0) + 1

    summary = {
        "total_components": len(steps),
        "components_by_type": by_type,
        "estimated_total_minutes": total_minutes,
        "manual_steps_count": manual_steps,
        "workflows_count": len(workflows),
        "credentials_needed_count": len(credentials),
        "dashboard_widgets_count": len(widgets),
        "feature_flags_count": len(flags),
        "feature_flags_enabled": flags_enabled,
        "missing_dependencies": {
            step.component_name: list(step.missing_dependencies)
            for step in steps
            if step.missing_dependencies
        },
        "custom_requirements": list(config.custom_requirements),
    }
    timestamp = generated_at or datetime.now(timezone.utc)
    return DeploymentPlan(
        version=version,
        request_id=request_id,
        client_id=config.client_id,
        generated_at=timestamp.isoformat(),
        summary=summary,
        deployment_steps=tuple(steps),
        database_setup=_build_database_setup(),
        workflows=tuple(workflows),
        credentials_needed=tuple(credentials),
        dashboard_widgets=tuple(widgets),
        feature_flags=tuple(flags),
        verification_checks=tuple(
            _build_verification_checks(
                steps=len(steps),
                flags_enabled=flags_enabled,
                workflows=len(workflows),
                widgets=len(widgets),
            )
        ),
        notifications=tuple(
            _build_notifications(
                config=config,
                steps=len(steps),
                manual_steps=manual_steps,
                total_minutes=total_minutes,
                flags_enabled=flags_enabled,
            )
        ),
        context=dict(context or {}),
    )
