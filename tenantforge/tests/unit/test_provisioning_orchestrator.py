from __future__ import annotations

import re

import pytest

from tenantforge.core.config import get_settings
from tenantforge.core.errors import StoreConflictError
from tenantforge.domain.models import Tenant
from tenantforge.providers.identity.base import Identity
from tenantforge.providers.identity.fake import FakeIdentityProvider
from tenantforge.providers.store.memory import InMemoryRegistryStore
from tenantforge.services.provisioning.orchestrator import HQ_BRANCH_NAME, ProvisionParams, provision_tenant
from tenantforge.tests.utils.factories import make_client, make_store


def _params(**overrides) -> ProvisionParams:
    values = {
        "client_id": "client-1",
        "customer_email": "Owner@Example.com",
        "customer_name": "Ana López",
        "customer_phone": "+525598765432",
        "vertical": "dental",
        "plan": "essentials",
        "branches_count": 1,
        "subscription_id": "sub_123",
    }
    values.update(overrides)
    return ProvisionParams(**values)


def _assert_nothing_left(store) -> None:
    assert store.tenants == {}
    assert store.branches == {}
    assert store.staff == {}
    assert store.staff_branches == {}
    assert store.user_roles == {}
    assert store.services == {}
    assert store.faqs == {}


@pytest.mark.asyncio
async def test_provisions_tenant_end_to_end() -> None:
    store = make_store()
    provider = FakeIdentityProvider()

    result = await provision_tenant(_params(), store=store, identity=provider)

    assert result.success is True
    assert result.tenant_slug == "ana-lopez"
    assert result.temp_password
    tenant = store.tenants[result.tenant_id]
    assert tenant.plan == "essentials"
    assert tenant.primary_contact_email == "owner@example.com"
    assert tenant.settings_json["sidebar_config"]
    (branch,) = store.branches.values()
    assert branch.id == result.branch_id
    assert branch.name == HQ_BRANCH_NAME
    assert branch.is_headquarters is True
    staff = store.staff[result.staff_id]
    assert staff.user_id == result.user_id
    assert (staff.first_name, staff.last_name) == ("Ana", "López")
    (link,) = store.staff_branches.values()
    assert link.branch_id == branch.id and link.is_primary is True
    (role,) = store.user_roles.values()
    assert role.role == "admin" and role.staff_id == staff.id
    client = store.clients["client-1"]
    assert client.tenant_id == result.tenant_id
    assert client.user_id == result.user_id
    assert client.status == "active"
    assert len(store.services) == result.details["services_created"] == 7
    assert len(store.faqs) == result.details["faqs_created"] == 3
    (audit,) = store.audit_logs
    assert audit.action == "tenant_provisioned"
    assert audit.new_data_json["subscription_id"] == "sub_123"
    assert result.details["existing_account"] is False
    assert result.details["degraded"] is False
    assert result.details["warnings"] == []


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"client_id": "  "}, "client_id"),
        ({"customer_email": ""}, "customer_email"),
        ({"customer_email": "not-an-email"}, "customer_email"),
        ({"vertical": "bakery"}, "vertical"),
        ({"plan": "platinum"}, "plan"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_input_is_rejected_before_any_write(overrides, field) -> None:
    store = make_store()

    result = await provision_tenant(_params(**overrides), store=store, identity=FakeIdentityProvider())

    assert result.success is False
    assert result.step == "validate_input"
    assert result.details == {"field": field}
    assert store.writes == 0


@pytest.mark.asyncio
async def test_plan_and_vertical_are_case_insensitive() -> None:
    store = make_store()
    result = await provision_tenant(
        _params(vertical="Restaurant", plan=" GROWTH "),
        store=store,
        identity=FakeIdentityProvider(),
    )
    assert result.success is True
    assert store.tenants[result.tenant_id].plan == "growth"
    assert store.tenants[result.tenant_id].vertical == "restaurant"


@pytest.mark.asyncio
async def test_unknown_client_fails_without_writes() -> None:
    store = make_store()

    result = await provision_tenant(_params(client_id="missing"), store=store, identity=FakeIdentityProvider())

    assert result.success is False
    assert result.step == "resolve_client"
    assert result.error == "Client not found"
    assert store.writes == 0


@pytest.mark.asyncio
async def test_already_provisioned_client_returns_existing_tenant() -> None:
    store = make_store(clients=[make_client(tenant_id="tenant-9", user_id="user-9")])
    await store.create_tenant(Tenant(id="tenant-9", name="Sonrisa", slug="sonrisa", vertical="dental", plan="growth"))
    store.writes = 0

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert result.already_provisioned is True
    assert result.tenant_id == "tenant-9"
    assert result.user_id == "user-9"
    assert result.tenant_slug == "sonrisa"
    assert result.message == "Client already provisioned"
    assert store.writes == 0


@pytest.mark.asyncio
async def test_repeat_call_converges_without_writes() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    first = await provision_tenant(_params(), store=store, identity=provider)
    writes = store.writes

    second = await provision_tenant(_params(), store=store, identity=provider)

    assert second.already_provisioned is True
    assert second.tenant_id == first.tenant_id
    assert second.tenant_slug == first.tenant_slug
    assert second.temp_password is None
    assert store.writes == writes
    assert len(store.tenants) == 1
    assert len(provider.users) == 1


@pytest.mark.asyncio
async def test_headquarters_failure_rolls_back_tenant() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    store.fail_on("create_branch")

    result = await provision_tenant(_params(), store=store, identity=provider)

    assert result.success is False
    assert result.step == "create_branches"
    assert result.details["rollback"]["clean"] is True
    _assert_nothing_left(store)
    assert provider.users == []
    assert store.clients["client-1"].tenant_id is None


@pytest.mark.asyncio
async def test_failed_attempt_can_be_retried() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    store.fail_on("create_branch")
    failed = await provision_tenant(_params(), store=store, identity=provider)
    store.clear_failures()

    retried = await provision_tenant(_params(), store=store, identity=provider)

    assert failed.success is False
    assert retried.success is True
    assert retried.tenant_slug == "ana-lopez"


@pytest.mark.asyncio
async def test_extra_branch_failure_degrades_but_succeeds() -> None:
    store = make_store()
    store.fail_on("create_branch", lambda branch: branch.slug == "sucursal-2")

    result = await provision_tenant(_params(branches_count=3), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert result.details["branches_requested"] == 3
    assert result.details["branches_created"] == 2
    assert [b["slug"] for b in result.details["branches"]] == ["principal", "sucursal-3"]
    assert result.details["warnings"] == ["branch_2_failed"]
    assert result.details["degraded"] is True
    links = sorted(store.staff_branches.values(), key=lambda link: not link.is_primary)
    assert [link.is_primary for link in links] == [True, False]


@pytest.mark.asyncio
async def test_role_failure_rolls_back_but_keeps_identity() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    store.fail_on("upsert_user_role")

    result = await provision_tenant(_params(branches_count=2), store=store, identity=provider)

    assert result.success is False
    assert result.step == "create_staff_and_role"
    rollback = result.details["rollback"]
    assert rollback["clean"] is True
    assert [entry["kind"] for entry in rollback["undone"]] == [
        "staff_branches",
        "staff",
        "branch",
        "branch",
        "tenant",
    ]
    _assert_nothing_left(store)
    assert len(provider.users) == 1


@pytest.mark.asyncio
async def test_existing_identity_is_linked_without_temp_password() -> None:
    provider = FakeIdentityProvider([Identity(id="user-42", email="owner@example.com")])

    result = await provision_tenant(_params(), store=make_store(), identity=provider)

    assert result.success is True
    assert result.user_id == "user-42"
    assert result.temp_password is None
    assert result.details["existing_account"] is True
    assert provider.users[0].metadata["tenant_id"] == result.tenant_id


@pytest.mark.asyncio
async def test_identity_failure_rolls_back() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    provider.fail_list = True

    result = await provision_tenant(_params(), store=store, identity=provider)

    assert result.success is False
    assert result.step == "resolve_identity"
    assert "Failed to resolve identity" in result.error
    _assert_nothing_left(store)


@pytest.mark.asyncio
async def test_incomplete_rollback_is_reported() -> None:
    store = make_store()
    store.fail_on("upsert_user_role")
    store.fail_on("delete_branch")

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    rollback = result.details["rollback"]
    assert rollback["clean"] is False
    assert [failure["kind"] for failure in rollback["failures"]] == ["branch", "tenant"]
    assert len(store.tenants) == 1
    assert store.staff == {}


@pytest.mark.asyncio
async def test_non_critical_failures_leave_warnings() -> None:
    store = make_store()
    for operation in ("update_client", "create_services", "create_faqs", "create_audit_log"):
        store.fail_on(operation)

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert result.details["warnings"] == [
        "link_client_failed",
        "seed_services_failed",
        "seed_faqs_failed",
        "audit_log_failed",
    ]
    assert result.details["services_created"] == 0
    assert result.details["degraded"] is True
    assert len(store.tenants) == 1


@pytest.mark.asyncio
async def test_unexpected_error_triggers_rollback() -> None:
    class BrokenProvider(FakeIdentityProvider):
        async def list_users(self, page: int, page_size: int) -> list[Identity]:
            raise RuntimeError("connection pool exhausted")

    store = make_store()

    result = await provision_tenant(_params(), store=store, identity=BrokenProvider())

    assert result.success is False
    assert result.step == "resolve_identity"
    assert result.error == "connection pool exhausted"
    assert result.details["rollback"]["clean"] is True
    _assert_nothing_left(store)


@pytest.mark.asyncio
async def test_slug_collision_gets_suffix() -> None:
    store = make_store()
    await store.create_tenant(Tenant(id="other", name="Ana López", slug="ana-lopez", vertical="dental", plan="starter"))

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert re.fullmatch(r"ana-lopez-[0-9a-f]{4}", result.tenant_slug)


@pytest.mark.asyncio
async def test_business_name_used_when_customer_name_missing() -> None:
    result = await provision_tenant(
        _params(customer_name=None),
        store=make_store(),
        identity=FakeIdentityProvider(),
    )
    assert result.tenant_slug == "clinica-dental-sonrisa"


@pytest.mark.asyncio
async def test_audit_metadata_is_redacted() -> None:
    store = make_store()

    await provision_tenant(
        _params(metadata={"stripe_token": "tok_live_123", "source": "webhook"}),
        store=store,
        identity=FakeIdentityProvider(),
    )

    (audit,) = store.audit_logs
    assert audit.new_data_json["metadata"] == {"stripe_token": "[REDACTED]", "source": "webhook"}
    assert "temp_password" not in str(audit.new_data_json)


@pytest.mark.asyncio
async def test_unexpected_error_after_client_link_restores_client() -> None:
    store = make_store()
    provider = FakeIdentityProvider()
    original_create_services = store.create_services
    calls = {"count": 0}

    async def flaky_create_services(services):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("connection reset")
        return await original_create_services(services)

    store.create_services = flaky_create_services  # type: ignore[method-assign]

    failed = await provision_tenant(_params(), store=store, identity=provider)

    assert failed.success is False
    assert failed.step == "seed_services"
    rollback = failed.details["rollback"]
    assert rollback["clean"] is True
    assert rollback["undone"][0] == {"kind": "client_link", "resource_id": "client-1"}
    _assert_nothing_left(store)
    client = store.clients["client-1"]
    assert client.tenant_id is None
    assert client.user_id is None
    assert client.status == "pending"

    retried = await provision_tenant(_params(), store=store, identity=provider)

    assert retried.success is True
    assert retried.already_provisioned is False
    assert retried.tenant_id in store.tenants
    assert store.clients["client-1"].tenant_id == retried.tenant_id
    assert retried.details["existing_account"] is True
    assert retried.details["services_created"] == 7


@pytest.mark.asyncio
async def test_link_to_missing_tenant_is_provisioned_again() -> None:
    store = make_store(clients=[make_client(tenant_id="gone", user_id="user-9", status="active")])

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert result.already_provisioned is False
    assert result.tenant_id != "gone"
    assert result.tenant_id in store.tenants
    assert store.clients["client-1"].tenant_id == result.tenant_id


@pytest.mark.asyncio
async def test_linked_tenant_lookup_failure_is_not_success() -> None:
    store = make_store(clients=[make_client(tenant_id="tenant-9", user_id="user-9")])
    store.fail_on("get_tenant")

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is False
    assert result.already_provisioned is False
    assert result.step == "resolve_client"
    assert "rollback" not in result.details
    assert store.writes == 0


class _RacingSlugStore(InMemoryRegistryStore):
    """Another tenant claims the slug between the availability check and the insert."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.create_tenant_calls = 0

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        self.create_tenant_calls += 1
        if self.create_tenant_calls == 1:
            await super().create_tenant(
                Tenant(id="rival", name="Ana López", slug=tenant.slug, vertical="dental", plan="starter")
            )
        return await super().create_tenant(tenant)


@pytest.mark.asyncio
async def test_slug_taken_at_insert_is_regenerated() -> None:
    store = _RacingSlugStore(clients=[make_client()])

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

    assert result.success is True
    assert re.fullmatch(r"ana-lopez-[0-9a-f]{4}", result.tenant_slug)
    assert store.tenants["rival"].slug == "ana-lopez"
    assert store.tenants[result.tenant_id].slug == result.tenant_slug


@pytest.mark.asyncio
async def test_persistent_slug_conflict_fails_at_create_tenant() -> None:
    class AlwaysConflicting(InMemoryRegistryStore):
        attempts = 0

        async def create_tenant(self, tenant: Tenant) -> Tenant:
            self.attempts += 1
            raise StoreConflictError("create_tenant failed: duplicate key")

    store = AlwaysConflicting(clients=[make_client()])
    settings = get_settings().model_copy(update={"slug_max_attempts": 2})

    result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider(), settings=settings)

    assert result.success is False
    assert result.step == "create_tenant"
    assert store.attempts == 2
    assert "rollback" not in result.details
