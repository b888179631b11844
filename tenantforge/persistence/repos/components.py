from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantforge.domain.components import Component
from tenantforge.domain.models import ComponentRecord


def to_component(record: ComponentRecord) -> Component:
    # Detach registry rows into immutable records before they leave the session.
    return Component.from_mapping(
        {
            "id": record.id,
            "component_name": record.component_name,
            "component_display_name": record.component_display_name,
            "component_description": record.component_description,
            "component_type": record.component_type,
            "vertical_applicable": record.vertical_applicable,
            "min_plan_required": record.min_plan_required,
            "workflow_file": record.workflow_file,
            "dependencies": record.dependencies,
            "config_template": record.config_template,
            "feature_flags": record.feature_flags,
            "dashboard_widgets": record.dashboard_widgets,
            "estimated_setup_minutes": record.estimated_setup_minutes,
            "setup_instructions": record.setup_instructions,
            "deployment_order": record.deployment_order,
            "is_active": record.is_active,
            "is_deprecated": record.is_deprecated,
        }
    )


async def list_active_components(session: AsyncSession) -> list[Component]:
    # Order in SQL so the selector can preserve registry order without re-sorting.
    result = await session.execute(
        select(ComponentRecord)
        .where(ComponentRecord.is_active.is_(True), ComponentRecord.is_deprecated.is_(False))
        .order_by(
            ComponentRecord.deployment_order.is_(None),
            ComponentRecord.deployment_order,
            ComponentRecord.component_name,
        )
    )
    return [to_component(record) for record in result.scalars().all()]


async def find_active_component(session: AsyncSession, name: str) -> Component | None:
    result = await session.execute(
        select(ComponentRecord).where(
            ComponentRecord.component_name == name,
            ComponentRecord.is_active.is_(True),
            ComponentRecord.is_deprecated.is_(False),
        )
    )
    record = result.scalar_one_or_none()
    return to_component(record) if record is not None else None


async def upsert_component(session: AsyncSession, component: Component) -> ComponentRecord:
    # Registry administrators edit by name; keep the existing id when the name is known.
    result = await session.execute(
        select(ComponentRecord).where(ComponentRecord.component_name == component.component_name)
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = ComponentRecord(id=component.id or uuid4().hex, component_name=component.component_name)
        session.add(record)
    record.component_display_name = component.display_name or component.component_name
    record.component_description = component.description
    record.component_type = component.component_type
    record.vertical_applicable = list(component.vertical_applicable) or None
    record.min_plan_required = component.min_plan_required
    record.workflow_file = component.workflow_file
    record.dependencies = list(component.dependencies)
    record.config_template = component.config_template.to_dict()
    record.feature_flags = list(component.feature_flags)
    record.dashboard_widgets = [dict(widget) for widget in component.dashboard_widgets]
    record.setup_instructions = component.setup_instructions
    record.estimated_setup_minutes = component.estimated_setup_minutes
    record.deployment_order = component.deployment_order
    record.is_active = component.is_active
    record.is_deprecated = component.is_deprecated
    return record
