from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol, runtime_checkable

from tenantforge.core.errors import IdentityProviderError
from tenantforge.providers.identity.base import Identity, IdentityProvider
from tenantforge.services.provisioning.passwords import generate_temp_password


logger = logging.getLogger(__name__)


@runtime_checkable
class EmailIndexedIdentityProvider(Protocol):
    # Providers with an indexed email lookup skip the page scan entirely.
    async def find_user_by_email(self, email: str) -> Identity | None:
        ...


@dataclass(frozen=True)
class IdentityResolution:
    identity: Identity
    created: bool
    temp_password: str | None = None


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


async def find_identity_by_email(
    provider: IdentityProvider,
    email: str,
    *,
    page_size: int = 50,
    max_pages: int = 100,
) -> Identity | None:
    """Find the identity whose email matches ``email`` case-insensitively.

    Scans at most ``max_pages`` pages; a short page means the listing is
    exhausted.
    """
    target = normalize_email(email)
    if isinstance(provider, EmailIndexedIdentityProvider):
        return await provider.find_user_by_email(target)
    for page in range(1, max(max_pages, 1) + 1):
        users = await provider.list_users(page, page_size)
        for user in users:
            if normalize_email(user.email) == target:
                return user
        if len(users) < page_size:
            return None
    logger.warning("identity_scan_page_limit_reached max_pages=%s page_size=%s", max_pages, page_size)
    return None


def _already_registered(exc: IdentityProviderError) -> bool:
    return exc.status_code == 422 or "already been registered" in str(exc).lower()


async def resolve_identity(
    provider: IdentityProvider,
    *,
    email: str,
    metadata: dict[str, object],
    page_size: int = 50,
    max_pages: int = 100,
    password_length: int = 16,
) -> IdentityResolution:
    # Existing identities keep their credentials; only new ones get a temp password.
    existing = await find_identity_by_email(provider, email, page_size=page_size, max_pages=max_pages)
    if existing is not None:
        updated = await provider.update_user_metadata(existing.id, dict(metadata))
        logger.info("identity_reused user_id=%s", existing.id)
        return IdentityResolution(identity=updated, created=False)

    temp_password = generate_temp_password(password_length)
    try:
        created = await provider.create_user(email, temp_password, dict(metadata))
    except IdentityProviderError as exc:
        if not _already_registered(exc):
            raise
        # Registered between the scan and the create; link the account instead.
        existing = await find_identity_by_email(provider, email, page_size=page_size, max_pages=max_pages)
        if existing is None:
            raise
        updated = await provider.update_user_metadata(existing.id, dict(metadata))
        logger.info("identity_reused_after_conflict user_id=%s", existing.id)
        return IdentityResolution(identity=updated, created=False)
    logger.info("identity_created user_id=%s", created.id)
    return IdentityResolution(identity=created, created=True, temp_password=temp_password)
