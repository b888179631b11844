from __future__ import annotations

from typing import Any, Protocol

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


class RegistryStore(Protocol):
    """Component registry plus tenant records.

    Every write commits on its own; there is no transaction spanning two calls,
    which is why provisioning tracks compensating deletes. Implementations raise
    ``StoreError`` on failure.
    """

    async def list_active_components(self) -> list[Component]:
        ...

    async def find_component_by_name(self, name: str) -> Component | None:
        ...

    async def upsert_component(self, component: Component) -> Component:
        ...

    async def get_client(self, client_id: str) -> Client | None:
        ...

    async def update_client(self, client_id: str, values: dict[str, Any]) -> None:
        ...

    async def get_tenant(self, tenant_id: str) -> Tenant | None:
        ...

    async def find_tenant_by_slug(self, slug: str) -> Tenant | None:
        ...

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        ...

    async def delete_tenant(self, tenant_id: str) -> None:
        ...

    async def create_branch(self, branch: Branch) -> Branch:
        ...

    async def list_branches(self, tenant_id: str) -> list[Branch]:
        ...

    async def delete_branch(self, branch_id: str) -> None:
        ...

    async def upsert_staff(self, staff: Staff) -> Staff:
        ...

    async def delete_staff(self, staff_id: str) -> None:
        ...

    async def upsert_staff_branch(self, link: StaffBranch) -> StaffBranch:
        ...

    async def delete_staff_branches(self, staff_id: str) -> None:
        ...

    async def upsert_user_role(self, role: UserRole) -> UserRole:
        ...

    async def delete_user_role(self, role_id: str) -> None:
        ...

    async def create_services(self, services: list[Service]) -> list[Service]:
        ...

    async def delete_services(self, tenant_id: str) -> None:
        ...

    async def create_faqs(self, faqs: list[Faq]) -> list[Faq]:
        ...

    async def delete_faqs(self, tenant_id: str) -> None:
        ...

    async def create_audit_log(self, entry: AuditLog) -> AuditLog:
        ...

    async def create_deployment_log(self, log: DeploymentLog) -> DeploymentLog:
        ...

    async def upsert_feature_flags(self, flags: list[FeatureFlag]) -> int:
        ...
