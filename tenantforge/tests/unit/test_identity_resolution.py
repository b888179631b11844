from __future__ import annotations

from typing import Any

import pytest

from tenantforge.core.errors import IdentityProviderError
from tenantforge.providers.identity.base import Identity
from tenantforge.providers.identity.fake import FakeIdentityProvider
from tenantforge.services.provisioning.identity import find_identity_by_email, resolve_identity


def _identities(count: int) -> list[Identity]:
    return [Identity(id=f"user-{n}", email=f"person{n}@example.com") for n in range(count)]


@pytest.mark.asyncio
async def test_scan_finds_user_on_later_page_case_insensitively() -> None:
    provider = FakeIdentityProvider(_identities(7) + [Identity(id="owner", email="Owner@Example.com")])

    found = await find_identity_by_email(provider, " owner@example.COM ", page_size=3)

    assert found is not None
    assert found.id == "owner"
    assert provider.pages_requested == [1, 2, 3]


@pytest.mark.asyncio
async def test_scan_stops_at_short_page() -> None:
    provider = FakeIdentityProvider(_identities(4))

    assert await find_identity_by_email(provider, "missing@example.com", page_size=3) is None
    assert provider.pages_requested == [1, 2]


@pytest.mark.asyncio
async def test_scan_is_bounded_by_max_pages() -> None:
    provider = FakeIdentityProvider(_identities(30))

    assert await find_identity_by_email(provider, "person29@example.com", page_size=5, max_pages=2) is None
    assert provider.pages_requested == [1, 2]


@pytest.mark.asyncio
async def test_email_indexed_provider_skips_scan() -> None:
    class IndexedProvider(FakeIdentityProvider):
        def __init__(self) -> None:
            super().__init__(_identities(3))
            self.lookups: list[str] = []

        async def find_user_by_email(self, email: str) -> Identity | None:
            self.lookups.append(email)
            return next((user for user in self.users if user.email == email), None)

    provider = IndexedProvider()

    found = await find_identity_by_email(provider, "PERSON1@example.com")

    assert found is not None and found.id == "user-1"
    assert provider.lookups == ["person1@example.com"]
    assert provider.pages_requested == []


@pytest.mark.asyncio
async def test_resolve_creates_new_identity_with_temp_password() -> None:
    provider = FakeIdentityProvider()

    resolution = await resolve_identity(
        provider,
        email="owner@example.com",
        metadata={"client_id": "client-1"},
        password_length=20,
    )

    assert resolution.created is True
    assert resolution.temp_password is not None
    assert len(resolution.temp_password) == 20
    assert provider.passwords[resolution.identity.id] == resolution.temp_password
    assert resolution.identity.metadata == {"client_id": "client-1"}


@pytest.mark.asyncio
async def test_resolve_reuses_existing_identity_without_password() -> None:
    provider = FakeIdentityProvider([Identity(id="owner", email="owner@example.com", metadata={"locale": "es"})])

    resolution = await resolve_identity(provider, email="owner@example.com", metadata={"tenant_id": "t-1"})

    assert resolution.created is False
    assert resolution.temp_password is None
    assert resolution.identity.metadata == {"locale": "es", "tenant_id": "t-1"}
    assert provider.passwords == {}


@pytest.mark.asyncio
async def test_resolve_links_account_registered_during_race() -> None:
    class RacingProvider(FakeIdentityProvider):
        # The first scan misses; the account appears before create_user runs.
        def __init__(self) -> None:
            super().__init__()
            self._raced = False

        async def list_users(self, page: int, page_size: int) -> list[Identity]:
            users = await super().list_users(page, page_size)
            if not self._raced:
                self._raced = True
                self._users["racer"] = Identity(id="racer", email="owner@example.com")
            return users

    provider = RacingProvider()

    resolution = await resolve_identity(provider, email="owner@example.com", metadata={"client_id": "c-1"})

    assert resolution.created is False
    assert resolution.identity.id == "racer"
    assert resolution.temp_password is None


@pytest.mark.asyncio
async def test_resolve_propagates_non_conflict_failures() -> None:
    provider = FakeIdentityProvider()
    provider.fail_create = True

    with pytest.raises(IdentityProviderError) as excinfo:
        await resolve_identity(provider, email="owner@example.com", metadata={})

    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
async def test_resolve_reraises_conflict_when_rescan_misses() -> None:
    class ConflictingProvider(FakeIdentityProvider):
        async def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> Identity:
            raise IdentityProviderError("email already been registered", status_code=422)

    with pytest.raises(IdentityProviderError) as excinfo:
        await resolve_identity(ConflictingProvider(), email="owner@example.com", metadata={})

    assert excinfo.value.status_code == 422
