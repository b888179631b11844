from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from tenantforge.core.errors import StoreError
from tenantforge.domain.components import ClientConfig
from tenantforge.domain.models import Base, Client, Tenant
from tenantforge.persistence.repos import access as access_repo
from tenantforge.persistence.repos import deployments as deployments_repo
from tenantforge.persistence.repos import tenants as tenants_repo
from tenantforge.providers.identity.fake import FakeIdentityProvider
from tenantforge.providers.store.sql import SqlRegistryStore
from tenantforge.services.assembly.engine import AssemblyRequest, assemble_deployment_plan
from tenantforge.services.provisioning.orchestrator import ProvisionParams, provision_tenant
from tenantforge.tests.utils.factories import make_component


async def _open_store(tmp_path: Path):
    # File-backed SQLite so every short-lived session sees the same database.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        session.add(
            Client(
                id="client-1",
                business_name="Clínica Dental Sonrisa",
                contact_name="Ana López",
                contact_email="owner@example.com",
                address_city="Guadalajara",
                status="pending",
                onboarding_completed=False,
            )
        )
        await session.commit()
    return engine, session_factory, SqlRegistryStore(session_factory=session_factory)


def _params(**overrides) -> ProvisionParams:
    values = {
        "client_id": "client-1",
        "customer_email": "owner@example.com",
        "customer_name": "Ana López",
        "vertical": "dental",
        "plan": "growth",
        "branches_count": 2,
    }
    values.update(overrides)
    return ProvisionParams(**values)


@pytest.mark.asyncio
async def test_provisioning_writes_every_table(tmp_path: Path) -> None:
    engine, session_factory, store = await _open_store(tmp_path)
    try:
        result = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())

        assert result.success is True
        async with session_factory() as session:
            client = await tenants_repo.get_client(session, "client-1")
            branches = await tenants_repo.list_branches(session, result.tenant_id)
            staff = await access_repo.list_staff(session, result.tenant_id)
            links = await access_repo.list_staff_branches(session, result.staff_id)
            roles = await access_repo.list_user_roles(session, result.tenant_id)
            services = await tenants_repo.list_services(session, result.tenant_id)
            faqs = await tenants_repo.list_faqs(session, result.tenant_id)
            audits = await tenants_repo.list_audit_logs(session, result.tenant_id)
        assert client.tenant_id == result.tenant_id
        assert client.status == "active"
        assert [b.slug for b in branches] == ["principal", "sucursal-2"]
        assert branches[0].city == "Guadalajara"
        assert [s.email for s in staff] == ["owner@example.com"]
        assert sorted(link.is_primary for link in links) == [False, True]
        assert [r.role for r in roles] == ["admin"]
        assert len(services) == 7
        assert len(faqs) == 3
        assert [a.action for a in audits] == ["tenant_provisioned"]

        again = await provision_tenant(_params(), store=store, identity=FakeIdentityProvider())
        assert again.already_provisioned is True
        assert again.tenant_slug == result.tenant_slug
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_rollback_removes_rows(tmp_path: Path) -> None:
    engine, session_factory, store = await _open_store(tmp_path)
    try:

        class FailingIdentity(FakeIdentityProvider):
            def __init__(self) -> None:
                super().__init__()
                self.fail_create = True

        result = await provision_tenant(_params(), store=store, identity=FailingIdentity())

        assert result.success is False
        assert result.step == "resolve_identity"
        assert result.details["rollback"]["clean"] is True
        assert await store.find_tenant_by_slug("ana-lopez") is None
        async with session_factory() as session:
            client = await tenants_repo.get_client(session, "client-1")
        assert client.tenant_id is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_duplicate_slug_is_a_store_error(tmp_path: Path) -> None:
    engine, _session_factory, store = await _open_store(tmp_path)
    try:
        await store.create_tenant(Tenant(name="A", slug="sonrisa", vertical="dental", plan="starter"))
        with pytest.raises(StoreError):
            await store.create_tenant(Tenant(name="B", slug="sonrisa", vertical="dental", plan="starter"))
        with pytest.raises(StoreError):
            await store.update_client("missing", {"status": "active"})
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_component_registry_round_trip_and_ordering(tmp_path: Path) -> None:
    engine, _session_factory, store = await _open_store(tmp_path)
    try:
        await store.upsert_component(make_component("unordered", "core"))
        await store.upsert_component(make_component("late", "core", deployment_order=50))
        first = await store.upsert_component(
            make_component(
                "early",
                "vertical_module",
                deployment_order=1,
                vertical_applicable=["dental"],
                dependencies=["late"],
                required_vars=["CLINIC_ID"],
                dashboard_widgets=[{"id": "chart", "type": "chart"}],
            )
        )
        await store.upsert_component(make_component("retired", "core", deployment_order=2, is_deprecated=True))
        updated = await store.upsert_component(make_component("early", "vertical_module", deployment_order=3))

        active = await store.list_active_components()

        assert [c.component_name for c in active] == ["early", "late", "unordered"]
        assert updated.id == first.id
        assert first.config_template.required_vars == ("CLINIC_ID",)
        assert first.dashboard_widgets == ({"id": "chart", "type": "chart"},)
        assert active[2].deployment_order is None
        assert await store.find_component_by_name("retired") is None
        assert (await store.find_component_by_name("late")).deployment_order == 50
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_persisted_plan_and_flags_are_upserted(tmp_path: Path) -> None:
    engine, session_factory, store = await _open_store(tmp_path)
    try:
        await store.upsert_component(make_component("core_platform", "core", feature_flags=["dashboard", "inbox"]))
        config = ClientConfig(client_id="client-1", vertical="dental", plan="starter")
        await assemble_deployment_plan(store, AssemblyRequest(config=config, persist=True))

        overridden = ClientConfig(
            client_id="client-1",
            vertical="dental",
            plan="starter",
            feature_overrides={"inbox": False},
        )
        result = await assemble_deployment_plan(store, AssemblyRequest(config=overridden, persist=True))

        assert result.persisted is True
        async with session_factory() as session:
            logs = await deployments_repo.list_deployment_logs(session, "client-1")
            flags = await deployments_repo.list_feature_flags(session, "client-1")
        assert len(logs) == 2
        assert {log.id for log in logs} >= {result.deployment_log_id}
        assert [(f.feature_key, f.is_enabled, f.override_reason) for f in flags] == [
            ("dashboard", True, None),
            ("inbox", False, "client_override"),
        ]
    finally:
        await engine.dispose()
