from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncIterator
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenantforge.core.errors import StoreConflictError, StoreError
from tenantforge.domain.components import Component
from tenantforge.domain.models import (
    AuditLog,
    Branch,
    Client,
    DeploymentLog,
    Faq,
    FeatureFlag,
    Service,
    Staff,
    StaffBranch,
    Tenant,
    UserRole,
)
from tenantforge.persistence.db import SessionLocal
from tenantforge.persistence.repos import access as access_repo
from tenantforge.persistence.repos import components as components_repo
from tenantforge.persistence.repos import deployments as deployments_repo
from tenantforge.persistence.repos import tenants as tenants_repo


logger = logging.getLogger(__name__)


class SqlRegistryStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        # One short-lived session per operation mirrors a store without cross-entity transactions.
        self._session_factory = session_factory or SessionLocal

    @asynccontextmanager
    async def _session(self, operation: str, *, commit: bool = False) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                if commit:
                    await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.warning("store_operation_conflict operation=%s", operation, exc_info=exc)
                raise StoreConflictError(f"{operation} failed: {exc}") from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.warning("store_operation_failed operation=%s", operation, exc_info=exc)
                raise StoreError(f"{operation} failed: {exc}") from exc

    async def list_active_components(self) -> list[Component]:
        async with self._session("list_active_components") as session:
            return await components_repo.list_active_components(session)

    async def find_component_by_name(self, name: str) -> Component | None:
        async with self._session("find_component_by_name") as session:
            return await components_repo.find_active_component(session, name)

    async def upsert_component(self, component: Component) -> Component:
        async with self._session("upsert_component", commit=True) as session:
            record = await components_repo.upsert_component(session, component)
            await session.flush()
            return components_repo.to_component(record)

    async def get_client(self, client_id: str) -> Client | None:
        async with self._session("get_client") as session:
            return await tenants_repo.get_client(session, client_id)

    async def update_client(self, client_id: str, values: dict[str, Any]) -> None:
        async with self._session("update_client", commit=True) as session:
            updated = await tenants_repo.update_client(session, client_id, values)
        if updated == 0:
            raise StoreError(f"update_client failed: client {client_id} not found")

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        async with self._session("get_tenant") as session:
            return await tenants_repo.get_tenant(session, tenant_id)

    async def find_tenant_by_slug(self, slug: str) -> Tenant | None:
        async with self._session("find_tenant_by_slug") as session:
            return await tenants_repo.find_tenant_by_slug(session, slug)

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        tenant.id = tenant.id or uuid4().hex
        async with self._session("create_tenant", commit=True) as session:
            session.add(tenant)
        return tenant

    async def delete_tenant(self, tenant_id: str) -> None:
        async with self._session("delete_tenant", commit=True) as session:
            await tenants_repo.delete_tenant(session, tenant_id)

    async def create_branch(self, branch: Branch) -> Branch:
        branch.id = branch.id or uuid4().hex
        async with self._session("create_branch", commit=True) as session:
            session.add(branch)
        return branch

    async def list_branches(self, tenant_id: str) -> list[Branch]:
        async with self._session("list_branches") as session:
            return await tenants_repo.list_branches(session, tenant_id)

    async def delete_branch(self, branch_id: str) -> None:
        async with self._session("delete_branch", commit=True) as session:
            await tenants_repo.delete_branch(session, branch_id)

    async def upsert_staff(self, staff: Staff) -> Staff:
        staff.id = staff.id or uuid4().hex
        async with self._session("upsert_staff", commit=True) as session:
            row, _created = await access_repo.upsert_staff(session, staff)
        return row

    async def delete_staff(self, staff_id: str) -> None:
        async with self._session("delete_staff", commit=True) as session:
            await access_repo.delete_staff(session, staff_id)

    async def upsert_staff_branch(self, link: StaffBranch) -> StaffBranch:
        link.id = link.id or uuid4().hex
        async with self._session("upsert_staff_branch", commit=True) as session:
            row, _created = await access_repo.upsert_staff_branch(session, link)
        return row

    async def delete_staff_branches(self, staff_id: str) -> None:
        async with self._session("delete_staff_branches", commit=True) as session:
            await access_repo.delete_staff_branches(session, staff_id)

    async def upsert_user_role(self, role: UserRole) -> UserRole:
        role.id = role.id or uuid4().hex
        async with self._session("upsert_user_role", commit=True) as session:
            row, _created = await access_repo.upsert_user_role(session, role)
        return row

    async def delete_user_role(self, role_id: str) -> None:
        async with self._session("delete_user_role", commit=True) as session:
            await access_repo.delete_user_role(session, role_id)

    async def create_services(self, services: list[Service]) -> list[Service]:
        for service in services:
            service.id = service.id or uuid4().hex
        async with self._session("create_services", commit=True) as session:
            session.add_all(services)
        return services

    async def delete_services(self, tenant_id: str) -> None:
        async with self._session("delete_services", commit=True) as session:
            await tenants_repo.delete_services(session, tenant_id)

    async def create_faqs(self, faqs: list[Faq]) -> list[Faq]:
        for faq in faqs:
            faq.id = faq.id or uuid4().hex
        async with self._session("create_faqs", commit=True) as session:
            session.add_all(faqs)
        return faqs

    async def delete_faqs(self, tenant_id: str) -> None:
        async with self._session("delete_faqs", commit=True) as session:
            await tenants_repo.delete_faqs(session, tenant_id)

    async def create_audit_log(self, entry: AuditLog) -> AuditLog:
        entry.id = entry.id or uuid4().hex
        async with self._session("create_audit_log", commit=True) as session:
            session.add(entry)
        return entry

    async def create_deployment_log(self, log: DeploymentLog) -> DeploymentLog:
        log.id = log.id or uuid4().hex
        async with self._session("create_deployment_log", commit=True) as session:
            session.add(log)
        return log

    async def upsert_feature_flags(self, flags: list[FeatureFlag]) -> int:
        written = 0
        async with self._session("upsert_feature_flags", commit=True) as session:
            for flag in flags:
                flag.id = flag.id or uuid4().hex
                await deployments_repo.upsert_feature_flag(session, flag)
                written += 1
        return written
