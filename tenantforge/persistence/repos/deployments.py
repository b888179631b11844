from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantforge.domain.models import DeploymentLog, FeatureFlag


async def list_deployment_logs(session: AsyncSession, client_id: str) -> list[DeploymentLog]:
    result = await session.execute(
        select(DeploymentLog)
        .where(DeploymentLog.client_id == client_id)
        .order_by(DeploymentLog.created_at.desc(), DeploymentLog.id)
    )
    return list(result.scalars().all())


async def upsert_feature_flag(session: AsyncSession, flag: FeatureFlag) -> tuple[FeatureFlag, bool]:
    # One row per (client, feature_key); re-assembly updates in place.
    result = await session.execute(
        select(FeatureFlag).where(
            FeatureFlag.client_id == flag.client_id,
            FeatureFlag.feature_key == flag.feature_key,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        session.add(flag)
        return flag, True
    existing.is_enabled = flag.is_enabled
    existing.source_component = flag.source_component
    existing.override_reason = flag.override_reason
    return existing, False


async def list_feature_flags(session: AsyncSession, client_id: str) -> list[FeatureFlag]:
    result = await session.execute(
        select(FeatureFlag).where(FeatureFlag.client_id == client_id).order_by(FeatureFlag.feature_key)
    )
    return list(result.scalars().all())
