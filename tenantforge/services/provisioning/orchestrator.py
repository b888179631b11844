from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import time
from typing import Any

from tenantforge.core.config import Settings, get_settings
from tenantforge.core.errors import (
    IdentityProviderError,
    ProvisioningError,
    ProvisioningLockError,
    StoreConflictError,
    StoreError,
    ValidationError,
)
from tenantforge.domain.models import Branch, Client, Faq, Service, Staff, StaffBranch, Tenant, UserRole
from tenantforge.domain.plans import normalize_plan
from tenantforge.domain.verticals import VerticalDefaults, get_vertical_defaults
from tenantforge.providers.identity.base import IdentityProvider
from tenantforge.providers.store.base import RegistryStore
from tenantforge.services.audit import record_event
from tenantforge.services.provisioning.identity import normalize_email, resolve_identity
from tenantforge.services.provisioning.locks import ProvisioningLock
from tenantforge.services.provisioning.rollback import RollbackTracker, UndoKind
from tenantforge.services.provisioning.slug import generate_unique_slug, slugify


logger = logging.getLogger(__name__)

HQ_BRANCH_NAME = "Sucursal Principal"
HQ_BRANCH_SLUG = "principal"
ADMIN_ROLE = "admin"
ADMIN_ROLE_TITLE = "Administrador"

DEFAULT_OPERATING_HOURS: dict[str, dict[str, Any]] = {
    "monday": {"open": "09:00", "close": "18:00", "enabled": True},
    "tuesday": {"open": "09:00", "close": "18:00", "enabled": True},
    "wednesday": {"open": "09:00", "close": "18:00", "enabled": True},
    "thursday": {"open": "09:00", "close": "18:00", "enabled": True},
    "friday": {"open": "09:00", "close": "18:00", "enabled": True},
    "saturday": {"open": "09:00", "close": "14:00", "enabled": True},
    "sunday": {"enabled": False},
}


@dataclass(frozen=True)
class ProvisionParams:
    client_id: str
    customer_email: str
    customer_name: str | None = None
    customer_phone: str | None = None
    vertical: str = "dental"
    plan: str = "essentials"
    branches_count: int = 1
    subscription_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProvisionResult:
    success: bool
    tenant_id: str | None = None
    tenant_slug: str | None = None
    branch_id: str | None = None
    user_id: str | None = None
    staff_id: str | None = None
    temp_password: str | None = None
    error: str | None = None
    message: str | None = None
    step: str | None = None
    already_provisioned: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "tenant_id": self.tenant_id,
            "tenant_slug": self.tenant_slug,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
            "staff_id": self.staff_id,
            "temp_password": self.temp_password,
            "error": self.error,
            "message": self.message,
            "step": self.step,
            "already_provisioned": self.already_provisioned,
            "details": dict(self.details),
        }


def validate_params(params: ProvisionParams, settings: Settings) -> tuple[str, str, str]:
    """Return the normalized (email, vertical, plan) or raise ``ValidationError``."""
    if not (params.client_id or "").strip():
        raise ValidationError("client_id", "client_id is required")
    email = normalize_email(params.customer_email)
    if not email:
        raise ValidationError("customer_email", "customer_email is required")
    if "@" not in email:
        raise ValidationError("customer_email", "customer_email is not a valid email address")
    vertical = (params.vertical or "").strip().lower()
    supported_verticals = [v.lower() for v in settings.supported_verticals]
    if vertical not in supported_verticals:
        raise ValidationError("vertical", f"Unsupported vertical '{params.vertical}'")
    plan = normalize_plan(params.plan) or ""
    if plan not in [p.lower() for p in settings.supported_plans]:
        raise ValidationError("plan", f"Unsupported plan '{params.plan}'")
    return email, vertical, plan


def _split_name(name: str | None) -> tuple[str, str]:
    parts = (name or "Admin").split()
    if not parts:
        return "Admin", ""
    return parts[0], " ".join(parts[1:])


class _ProvisioningRun:
    """One forward pass; owns the rollback tracker for that attempt only."""

    def __init__(
        self,
        params: ProvisionParams,
        *,
        email: str,
        vertical: str,
        plan: str,
        store: RegistryStore,
        identity: IdentityProvider,
        settings: Settings,
        started: float,
    ) -> None:
        self.params = params
        self.email = email
        self.vertical = vertical
        self.plan = plan
        self.store = store
        self.identity = identity
        self.settings = settings
        self.started = started
        self.tracker = RollbackTracker()
        self.step = "resolve_client"
        self.warnings: list[str] = []
        self.defaults: VerticalDefaults = get_vertical_defaults(vertical)
        self.branches_requested = max(int(params.branches_count or 1), 1)

    def _duration_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    async def execute(self) -> ProvisionResult:
        try:
            return await self._forward()
        except ProvisioningError as exc:
            return await self._fail(exc.step, exc.message, exc)
        except Exception as exc:  # noqa: BLE001 - anything after the tenant exists must be compensated
            logger.exception("provisioning_unexpected_error client_id=%s step=%s", self.params.client_id, self.step)
            return await self._fail(self.step, str(exc) or "Unexpected error during provisioning", exc)

    async def _fail(self, step: str, message: str, exc: Exception) -> ProvisionResult:
        details: dict[str, Any] = {
            "duration_ms": self._duration_ms(),
            "vertical": self.vertical,
            "plan": self.plan,
            "warnings": list(self.warnings),
        }
        if self.tracker.has_tenant:
            report = await self.tracker.replay(self.store)
            details["rollback"] = report.to_dict()
        else:
            self.tracker.discard()
        logger.warning(
            "provisioning_failed client_id=%s step=%s error=%s",
            self.params.client_id,
            step,
            message,
            exc_info=exc,
        )
        return ProvisionResult(success=False, error=message, step=step, details=details)

    async def _forward(self) -> ProvisionResult:
        self.step = "resolve_client"
        client = await self._resolve_client()
        if client.tenant_id:
            existing = await self._already_provisioned(client)
            if existing is not None:
                return existing

        name = self.params.customer_name or client.business_name or "tenant"
        tenant = await self._create_tenant(client, name)
        slug = tenant.slug

        self.step = "create_branches"
        branches = await self._create_branches(client, tenant)
        headquarters = branches[0]

        self.step = "resolve_identity"
        try:
            resolution = await resolve_identity(
                self.identity,
                email=self.email,
                metadata={
                    "name": self.params.customer_name,
                    "tenant_id": tenant.id,
                    "role": ADMIN_ROLE,
                    "vertical": self.vertical,
                },
                page_size=self.settings.identity_page_size,
                max_pages=self.settings.identity_max_pages,
                password_length=self.settings.temp_password_length,
            )
        except IdentityProviderError as exc:
            raise ProvisioningError("resolve_identity", f"Failed to resolve identity: {exc}") from exc
        user_id = resolution.identity.id

        self.step = "create_staff_and_role"
        staff = await self._create_staff_and_role(tenant, branches, user_id)

        self.step = "link_client"
        await self._link_client(client, tenant, user_id)

        self.step = "seed_services"
        services_created = await self._seed_services(tenant)

        self.step = "seed_faqs"
        faqs_created = await self._seed_faqs(tenant)

        self.step = "audit_log"
        duration_ms = self._duration_ms()
        entry = await record_event(
            self.store,
            action="tenant_provisioned",
            entity_type="tenant",
            entity_id=tenant.id,
            client_id=self.params.client_id,
            tenant_id=tenant.id,
            user_id=user_id,
            metadata={
                "tenant_id": tenant.id,
                "branch_id": headquarters.id,
                "vertical": self.vertical,
                "plan": self.plan,
                "subscription_id": self.params.subscription_id,
                "duration_ms": duration_ms,
                "metadata": dict(self.params.metadata),
            },
        )
        if entry is None:
            self.warnings.append("audit_log_failed")

        self.step = "success"
        self.tracker.discard()
        degraded = len(branches) < self.branches_requested or bool(self.warnings)
        logger.info(
            "tenant_provisioned client_id=%s tenant_id=%s slug=%s branches=%s/%s existing_account=%s duration_ms=%s",
            self.params.client_id,
            tenant.id,
            slug,
            len(branches),
            self.branches_requested,
            not resolution.created,
            duration_ms,
        )
        return ProvisionResult(
            success=True,
            tenant_id=tenant.id,
            tenant_slug=slug,
            branch_id=headquarters.id,
            user_id=user_id,
            staff_id=staff.id,
            temp_password=resolution.temp_password,
            details={
                "duration_ms": duration_ms,
                "vertical": self.vertical,
                "plan": self.plan,
                "branches_requested": self.branches_requested,
                "branches_created": len(branches),
                "branches": [
                    {
                        "id": branch.id,
                        "name": branch.name,
                        "slug": branch.slug,
                        "is_headquarters": branch.is_headquarters,
                    }
                    for branch in branches
                ],
                "services_created": services_created,
                "faqs_created": faqs_created,
                "existing_account": not resolution.created,
                "degraded": degraded,
                "warnings": list(self.warnings),
            },
        )

    async def _resolve_client(self) -> Client:
        try:
            client = await self.store.get_client(self.params.client_id)
        except StoreError as exc:
            raise ProvisioningError("resolve_client", f"Failed to load client: {exc}") from exc
        if client is None:
            raise ProvisioningError("resolve_client", "Client not found")
        return client

    async def _already_provisioned(self, client: Client) -> ProvisionResult | None:
        # Retries after a completed run converge here without writing anything.
        # None means the link points at a tenant that no longer exists.
        try:
            tenant = await self.store.get_tenant(client.tenant_id)
        except StoreError as exc:
            raise ProvisioningError("resolve_client", f"Failed to load linked tenant: {exc}") from exc
        if tenant is None:
            logger.warning(
                "provisioning_stale_client_link client_id=%s tenant_id=%s",
                self.params.client_id,
                client.tenant_id,
            )
            return None
        self.tracker.discard()
        logger.info(
            "provisioning_already_provisioned client_id=%s tenant_id=%s",
            self.params.client_id,
            client.tenant_id,
        )
        return ProvisionResult(
            success=True,
            tenant_id=client.tenant_id,
            tenant_slug=tenant.slug,
            user_id=client.user_id,
            message="Client already provisioned",
            already_provisioned=True,
            details={"duration_ms": self._duration_ms()},
        )

    async def _generate_slug(self, name: str) -> str:
        async def _exists(candidate: str) -> bool:
            return await self.store.find_tenant_by_slug(candidate) is not None

        try:
            return await generate_unique_slug(
                name,
                _exists,
                max_length=self.settings.slug_max_length,
                max_attempts=self.settings.slug_max_attempts,
            )
        except StoreError as exc:
            raise ProvisioningError("generate_slug", f"Failed to check slug availability: {exc}") from exc

    def _tenant(self, client: Client, slug: str) -> Tenant:
        defaults = self.defaults
        return Tenant(
            client_id=self.params.client_id,
            name=self.params.customer_name or client.business_name or "Mi Negocio",
            slug=slug,
            vertical=self.vertical,
            plan=self.plan,
            primary_contact_name=self.params.customer_name or client.contact_name,
            primary_contact_email=self.email,
            primary_contact_phone=self.params.customer_phone or client.contact_phone,
            status="active",
            plan_started_at=datetime.now(timezone.utc),
            settings_json={
                "timezone": defaults.timezone or self.settings.default_timezone,
                "language": defaults.locale or self.settings.default_locale,
                "currency": defaults.currency or self.settings.default_currency,
                "sidebar_config": [dict(item) for item in defaults.sidebar_config],
            },
            features_enabled_json=[],
        )

    async def _create_tenant(self, client: Client, name: str) -> Tenant:
        attempts = max(int(self.settings.slug_max_attempts), 1)
        attempt = 0
        while True:
            attempt += 1
            self.step = "generate_slug"
            slug = await self._generate_slug(name)
            self.step = "create_tenant"
            try:
                created = await self.store.create_tenant(self._tenant(client, slug))
            except StoreConflictError as exc:
                if attempt >= attempts:
                    raise ProvisioningError("create_tenant", f"Failed to create tenant: {exc}") from exc
                # Another tenant claimed the slug between the availability check and the insert.
                logger.warning("tenant_slug_conflict slug=%s attempt=%s", slug, attempt)
                continue
            except StoreError as exc:
                raise ProvisioningError("create_tenant", f"Failed to create tenant: {exc}") from exc
            self.tracker.track(UndoKind.TENANT, created.id)
            logger.info("tenant_created tenant_id=%s slug=%s", created.id, slug)
            return created

    def _branch(self, client: Client, tenant: Tenant, *, name: str, slug: str, headquarters: bool) -> Branch:
        phone = self.params.customer_phone or client.contact_phone
        return Branch(
            tenant_id=tenant.id,
            name=name,
            slug=slug,
            city=client.address_city or "Ciudad",
            state=client.address_state or "Estado",
            country=client.address_country or "Mexico",
            address=client.address_street if headquarters else None,
            phone=phone,
            whatsapp_number=phone,
            is_headquarters=headquarters,
            is_active=True,
            timezone=self.defaults.timezone or self.settings.default_timezone,
            operating_hours_json={day: dict(hours) for day, hours in DEFAULT_OPERATING_HOURS.items()},
        )

    async def _create_branches(self, client: Client, tenant: Tenant) -> list[Branch]:
        try:
            headquarters = await self.store.create_branch(
                self._branch(client, tenant, name=HQ_BRANCH_NAME, slug=HQ_BRANCH_SLUG, headquarters=True)
            )
        except StoreError as exc:
            raise ProvisioningError("create_branches", f"Failed to create headquarters branch: {exc}") from exc
        self.tracker.track(UndoKind.BRANCH, headquarters.id)
        branches = [headquarters]

        for number in range(2, self.branches_requested + 1):
            try:
                branch = await self.store.create_branch(
                    self._branch(
                        client,
                        tenant,
                        name=f"Sucursal {number}",
                        slug=f"sucursal-{number}",
                        headquarters=False,
                    )
                )
            except StoreError as exc:
                # Fewer branches than purchased beats a failed provisioning.
                logger.warning(
                    "branch_create_failed tenant_id=%s branch_number=%s",
                    tenant.id,
                    number,
                    exc_info=exc,
                )
                self.warnings.append(f"branch_{number}_failed")
                continue
            self.tracker.track(UndoKind.BRANCH, branch.id)
            branches.append(branch)
        return branches

    async def _create_staff_and_role(self, tenant: Tenant, branches: list[Branch], user_id: str) -> Staff:
        first_name, last_name = _split_name(self.params.customer_name)
        try:
            staff = await self.store.upsert_staff(
                Staff(
                    tenant_id=tenant.id,
                    user_id=user_id,
                    first_name=first_name,
                    last_name=last_name,
                    display_name=self.params.customer_name or first_name,
                    email=self.email,
                    role=ADMIN_ROLE,
                    role_title=ADMIN_ROLE_TITLE,
                    is_active=True,
                    notification_preferences_json={"email": True, "whatsapp": True, "sms": False},
                )
            )
            self.tracker.track(UndoKind.STAFF, staff.id)
            self.tracker.track(UndoKind.STAFF_BRANCHES, staff.id)
            for index, branch in enumerate(branches):
                await self.store.upsert_staff_branch(
                    StaffBranch(staff_id=staff.id, branch_id=branch.id, is_primary=index == 0)
                )
            role = await self.store.upsert_user_role(
                UserRole(
                    user_id=user_id,
                    tenant_id=tenant.id,
                    staff_id=staff.id,
                    role=ADMIN_ROLE,
                    is_active=True,
                    permissions_json={"all": True},
                )
            )
            self.tracker.track(UndoKind.USER_ROLE, role.id)
        except StoreError as exc:
            raise ProvisioningError("create_staff_and_role", f"Failed to create staff and role: {exc}") from exc
        logger.info("staff_linked tenant_id=%s staff_id=%s role_id=%s", tenant.id, staff.id, role.id)
        return staff

    async def _link_client(self, client: Client, tenant: Tenant, user_id: str) -> None:
        # Captured before the update; the in-memory store mutates the same object.
        previous = {
            "tenant_id": client.tenant_id,
            "user_id": client.user_id,
            "status": client.status,
            "onboarding_completed": client.onboarding_completed,
        }
        try:
            await self.store.update_client(
                self.params.client_id,
                {
                    "tenant_id": tenant.id,
                    "user_id": user_id,
                    "status": "active",
                    "onboarding_completed": False,
                },
            )
        except StoreError as exc:
            logger.warning("client_link_failed client_id=%s tenant_id=%s", self.params.client_id, tenant.id, exc_info=exc)
            self.warnings.append("link_client_failed")
            return
        self.tracker.track(UndoKind.CLIENT_LINK, self.params.client_id, restore=previous)

    async def _seed_services(self, tenant: Tenant) -> int:
        names = self.defaults.default_services
        if not names:
            return 0
        services = [
            Service(
                tenant_id=tenant.id,
                name=name,
                slug=slugify(name),
                category="General",
                is_active=True,
                display_order=index,
            )
            for index, name in enumerate(names)
        ]
        try:
            created = await self.store.create_services(services)
        except StoreError as exc:
            logger.warning("default_services_failed tenant_id=%s", tenant.id, exc_info=exc)
            self.warnings.append("seed_services_failed")
            return 0
        self.tracker.track(UndoKind.SERVICES, tenant.id)
        return len(created)

    async def _seed_faqs(self, tenant: Tenant) -> int:
        entries = self.defaults.default_faqs
        if not entries:
            return 0
        language = self.defaults.locale or self.settings.default_locale
        faqs = [
            Faq(
                tenant_id=tenant.id,
                question=entry.question,
                answer=entry.answer,
                category=entry.category,
                language=language,
                is_active=True,
                display_order=index,
            )
            for index, entry in enumerate(entries)
        ]
        try:
            created = await self.store.create_faqs(faqs)
        except StoreError as exc:
            logger.warning("default_faqs_failed tenant_id=%s", tenant.id, exc_info=exc)
            self.warnings.append("seed_faqs_failed")
            return 0
        self.tracker.track(UndoKind.FAQS, tenant.id)
        return len(created)


async def provision_tenant(
    params: ProvisionParams,
    *,
    store: RegistryStore,
    identity: IdentityProvider,
    lock: ProvisioningLock | None = None,
    settings: Settings | None = None,
) -> ProvisionResult:
    """Bootstrap a tenant for a paying client, compensating on failure.

    Safe to call repeatedly for the same client: once the client carries a
    tenant id the call returns that tenant without writing. Failures after the
    tenant row exists delete everything this attempt created, newest first.
    """
    settings = settings or get_settings()
    started = time.monotonic()
    try:
        email, vertical, plan = validate_params(params, settings)
    except ValidationError as exc:
        logger.info("provisioning_validation_failed client_id=%s field=%s", params.client_id, exc.field)
        return ProvisionResult(
            success=False,
            error=exc.message,
            step="validate_input",
            details={"field": exc.field},
        )

    lease = None
    if lock is not None:
        try:
            lease = await lock.acquire(params.client_id)
        except ProvisioningLockError as exc:
            logger.warning("provisioning_lock_failed client_id=%s", params.client_id, exc_info=exc)
            return ProvisionResult(success=False, error=str(exc), step="acquire_lock")
        if lease is None:
            logger.info("provisioning_in_progress client_id=%s", params.client_id)
            return ProvisionResult(
                success=False,
                error="Provisioning already in progress",
                step="acquire_lock",
            )

    run = _ProvisioningRun(
        params,
        email=email,
        vertical=vertical,
        plan=plan,
        store=store,
        identity=identity,
        settings=settings,
        started=started,
    )
    try:
        return await run.execute()
    finally:
        if lease is not None and lock is not None:
            await lock.release(lease)
