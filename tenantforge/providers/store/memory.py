from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Iterable
from uuid import uuid4

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


class InMemoryRegistryStore:
    """Dict-backed registry store for local development and tests.

    ``fail_on`` injects a ``StoreError`` into a named operation, optionally only
    when a predicate over the call arguments matches, so every compensation
    path can be exercised deterministically. ``writes`` counts mutating calls.
    """

    def __init__(
        self,
        components: Iterable[Component] = (),
        clients: Iterable[Client] = (),
    ) -> None:
        self.components: dict[str, Component] = {}
        self.clients: dict[str, Client] = {client.id: client for client in clients}
        self.tenants: dict[str, Tenant] = {}
        self.branches: dict[str, Branch] = {}
        self.staff: dict[str, Staff] = {}
        self.staff_branches: dict[str, StaffBranch] = {}
        self.user_roles: dict[str, UserRole] = {}
        self.services: dict[str, Service] = {}
        self.faqs: dict[str, Faq] = {}
        self.audit_logs: list[AuditLog] = []
        self.deployment_logs: list[DeploymentLog] = []
        self.feature_flags: dict[tuple[str, str], FeatureFlag] = {}
        self.writes = 0
        self._failures: dict[str, Callable[..., bool] | None] = {}
        for component in components:
            self.components[component.component_name] = component

    def fail_on(self, operation: str, predicate: Callable[..., bool] | None = None) -> None:
        self._failures[operation] = predicate

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, operation: str, *args: Any) -> None:
        if operation not in self._failures:
            return
        predicate = self._failures[operation]
        if predicate is None or predicate(*args):
            raise StoreError(f"{operation} failed: injected failure")

    def _write(self, operation: str, *args: Any) -> None:
        self._check(operation, *args)
        self.writes += 1

    async def list_active_components(self) -> list[Component]:
        self._check("list_active_components")
        active = [c for c in self.components.values() if c.is_available]
        return sorted(active, key=lambda c: (c.deployment_order is None, c.sort_order, c.component_name))

    async def find_component_by_name(self, name: str) -> Component | None:
        self._check("find_component_by_name", name)
        component = self.components.get(name)
        if component is None or not component.is_available:
            return None
        return component

    async def upsert_component(self, component: Component) -> Component:
        self._write("upsert_component", component)
        existing = self.components.get(component.component_name)
        stored = replace(component, id=(existing.id if existing else None) or component.id or uuid4().hex)
        self.components[component.component_name] = stored
        return stored

    async def get_client(self, client_id: str) -> Client | None:
        self._check("get_client", client_id)
        return self.clients.get(client_id)

    async def update_client(self, client_id: str, values: dict[str, Any]) -> None:
        self._write("update_client", client_id, values)
        client = self.clients.get(client_id)
        if client is None:
            raise StoreError(f"update_client failed: client {client_id} not found")
        for key, value in values.items():
            setattr(client, key, value)

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        self._check("get_tenant", tenant_id)
        return self.tenants.get(tenant_id)

    async def find_tenant_by_slug(self, slug: str) -> Tenant | None:
        self._check("find_tenant_by_slug", slug)
        return next((t for t in self.tenants.values() if t.slug == slug), None)

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        self._write("create_tenant", tenant)
        if any(t.slug == tenant.slug for t in self.tenants.values()):
            raise StoreConflictError(f"create_tenant failed: slug {tenant.slug} already exists")
        tenant.id = tenant.id or uuid4().hex
        self.tenants[tenant.id] = tenant
        return tenant

    async def delete_tenant(self, tenant_id: str) -> None:
        self._write("delete_tenant", tenant_id)
        if any(b.tenant_id == tenant_id for b in self.branches.values()):
            raise StoreError("delete_tenant failed: branches still reference tenant")
        self.tenants.pop(tenant_id, None)

    async def create_branch(self, branch: Branch) -> Branch:
        self._write("create_branch", branch)
        branch.id = branch.id or uuid4().hex
        self.branches[branch.id] = branch
        return branch

    async def list_branches(self, tenant_id: str) -> list[Branch]:
        self._check("list_branches", tenant_id)
        rows = [b for b in self.branches.values() if b.tenant_id == tenant_id]
        return sorted(rows, key=lambda b: not b.is_headquarters)

    async def delete_branch(self, branch_id: str) -> None:
        self._write("delete_branch", branch_id)
        if any(link.branch_id == branch_id for link in self.staff_branches.values()):
            raise StoreError("delete_branch failed: staff links still reference branch")
        self.branches.pop(branch_id, None)

    async def upsert_staff(self, staff: Staff) -> Staff:
        self._write("upsert_staff", staff)
        email = staff.email.lower()
        for existing in self.staff.values():
            if existing.tenant_id == staff.tenant_id and existing.email.lower() == email:
                existing.user_id = staff.user_id
                existing.first_name = staff.first_name
                existing.last_name = staff.last_name
                existing.display_name = staff.display_name
                existing.role = staff.role
                existing.role_title = staff.role_title
                existing.is_active = staff.is_active
                existing.notification_preferences_json = staff.notification_preferences_json
                return existing
        staff.id = staff.id or uuid4().hex
        staff.email = email
        self.staff[staff.id] = staff
        return staff

    async def delete_staff(self, staff_id: str) -> None:
        self._write("delete_staff", staff_id)
        self.staff.pop(staff_id, None)

    async def upsert_staff_branch(self, link: StaffBranch) -> StaffBranch:
        self._write("upsert_staff_branch", link)
        for existing in self.staff_branches.values():
            if existing.staff_id == link.staff_id and existing.branch_id == link.branch_id:
                existing.is_primary = link.is_primary
                return existing
        link.id = link.id or uuid4().hex
        self.staff_branches[link.id] = link
        return link

    async def delete_staff_branches(self, staff_id: str) -> None:
        self._write("delete_staff_branches", staff_id)
        for link_id in [k for k, v in self.staff_branches.items() if v.staff_id == staff_id]:
            del self.staff_branches[link_id]

    async def upsert_user_role(self, role: UserRole) -> UserRole:
        self._write("upsert_user_role", role)
        for existing in self.user_roles.values():
            if existing.user_id == role.user_id and existing.tenant_id == role.tenant_id:
                existing.role = role.role
                existing.staff_id = role.staff_id
                existing.is_active = role.is_active
                existing.permissions_json = role.permissions_json
                return existing
        role.id = role.id or uuid4().hex
        self.user_roles[role.id] = role
        return role

    async def delete_user_role(self, role_id: str) -> None:
        self._write("delete_user_role", role_id)
        self.user_roles.pop(role_id, None)

    async def create_services(self, services: list[Service]) -> list[Service]:
        self._write("create_services", services)
        for service in services:
            service.id = service.id or uuid4().hex
            self.services[service.id] = service
        return services

    async def delete_services(self, tenant_id: str) -> None:
        self._write("delete_services", tenant_id)
        for service_id in [k for k, v in self.services.items() if v.tenant_id == tenant_id]:
            del self.services[service_id]

    async def create_faqs(self, faqs: list[Faq]) -> list[Faq]:
        self._write("create_faqs", faqs)
        for faq in faqs:
            faq.id = faq.id or uuid4().hex
            self.faqs[faq.id] = faq
        return faqs

    async def delete_faqs(self, tenant_id: str) -> None:
        self._write("delete_faqs", tenant_id)
        for faq_id in [k for k, v in self.faqs.items() if v.tenant_id == tenant_id]:
            del self.faqs[faq_id]

    async def create_audit_log(self, entry: AuditLog) -> AuditLog:
        self._write("create_audit_log", entry)
        entry.id = entry.id or uuid4().hex
        self.audit_logs.append(entry)
        return entry

    async def create_deployment_log(self, log: DeploymentLog) -> DeploymentLog:
        self._write("create_deployment_log", log)
        log.id = log.id or uuid4().hex
        self.deployment_logs.append(log)
        return log

    async def upsert_feature_flags(self, flags: list[FeatureFlag]) -> int:
        self._write("upsert_feature_flags", flags)
        for flag in flags:
            key = (flag.client_id, flag.feature_key)
            existing = self.feature_flags.get(key)
            if existing is None:
                flag.id = flag.id or uuid4().hex
                self.feature_flags[key] = flag
            else:
                existing.is_enabled = flag.is_enabled
                existing.source_component = flag.source_component
                existing.override_reason = flag.override_reason
        return len(flags)
