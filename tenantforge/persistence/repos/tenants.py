from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantforge.domain.models import AuditLog, Branch, Client, Faq, Service, Tenant


async def get_client(session: AsyncSession, client_id: str) -> Client | None:
    return await session.get(Client, client_id)


async def update_client(session: AsyncSession, client_id: str, values: dict[str, Any]) -> int:
    result = await session.execute(update(Client).where(Client.id == client_id).values(**values))
    return int(result.rowcount or 0)


async def get_tenant(session: AsyncSession, tenant_id: str) -> Tenant | None:
    return await session.get(Tenant, tenant_id)


async def find_tenant_by_slug(session: AsyncSession, slug: str) -> Tenant | None:
    result = await session.execute(select(Tenant).where(Tenant.slug == slug))
    return result.scalar_one_or_none()


async def delete_tenant(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(delete(Tenant).where(Tenant.id == tenant_id))
    return int(result.rowcount or 0)


async def list_branches(session: AsyncSession, tenant_id: str) -> list[Branch]:
    # Headquarters first so callers can treat the first row as primary.
    result = await session.execute(
        select(Branch)
        .where(Branch.tenant_id == tenant_id)
        .order_by(Branch.is_headquarters.desc(), Branch.created_at, Branch.id)
    )
    return list(result.scalars().all())


async def delete_branch(session: AsyncSession, branch_id: str) -> int:
    result = await session.execute(delete(Branch).where(Branch.id == branch_id))
    return int(result.rowcount or 0)


async def list_services(session: AsyncSession, tenant_id: str) -> list[Service]:
    result = await session.execute(
        select(Service).where(Service.tenant_id == tenant_id).order_by(Service.display_order)
    )
    return list(result.scalars().all())


async def delete_services(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(delete(Service).where(Service.tenant_id == tenant_id))
    return int(result.rowcount or 0)


async def list_faqs(session: AsyncSession, tenant_id: str) -> list[Faq]:
    result = await session.execute(
        select(Faq).where(Faq.tenant_id == tenant_id).order_by(Faq.display_order)
    )
    return list(result.scalars().all())


async def delete_faqs(session: AsyncSession, tenant_id: str) -> int:
    result = await session.execute(delete(Faq).where(Faq.tenant_id == tenant_id))
    return int(result.rowcount or 0)


async def list_audit_logs(session: AsyncSession, tenant_id: str) -> list[AuditLog]:
    result = await session.execute(
        select(AuditLog).where(AuditLog.tenant_id == tenant_id).order_by(AuditLog.created_at)
    )
    return list(result.scalars().all())
