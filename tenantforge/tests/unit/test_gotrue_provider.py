from __future__ import annotations

import json

import httpx
import pytest

from tenantforge.core.errors import IdentityProviderError
from tenantforge.providers.identity.factory import get_identity_provider
from tenantforge.providers.identity.fake import FakeIdentityProvider
from tenantforge.providers.identity.gotrue import GoTrueIdentityProvider
from tenantforge.services.resilience import RetryPolicy


_POLICY = RetryPolicy(timeout_ms=2000, max_attempts=3, backoff_ms=0)


def _provider(handler) -> GoTrueIdentityProvider:
    return GoTrueIdentityProvider(
        base_url="https://auth.example.com/auth/v1/",
        service_key="service-role-key",
        policy=_POLICY,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_users_sends_admin_headers_and_paging() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"users": [{"id": "u-1", "email": "owner@example.com", "user_metadata": {"role": "admin"}}]},
        )

    users = await _provider(handler).list_users(2, 25)

    assert [user.id for user in users] == ["u-1"]
    assert users[0].metadata == {"role": "admin"}
    request = seen[0]
    assert request.url.path == "/auth/v1/admin/users"
    assert request.url.params["page"] == "2"
    assert request.url.params["per_page"] == "25"
    assert request.headers["apikey"] == "service-role-key"
    assert request.headers["authorization"] == "Bearer service-role-key"


@pytest.mark.asyncio
async def test_create_user_confirms_email() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": "u-2", "email": "owner@example.com"})

    identity = await _provider(handler).create_user("owner@example.com", "Temp#Pass123", {"tenant_id": "t-1"})

    assert identity.id == "u-2"
    assert bodies == [
        {
            "email": "owner@example.com",
            "password": "Temp#Pass123",
            "email_confirm": True,
            "user_metadata": {"tenant_id": "t-1"},
        }
    ]


@pytest.mark.asyncio
async def test_update_user_metadata_puts_to_user_path() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "u-3", "email": "a@b.c", "user_metadata": {"tenant_id": "t-1"}})

    identity = await _provider(handler).update_user_metadata("u-3", {"tenant_id": "t-1"})

    assert seen[0].method == "PUT"
    assert seen[0].url.path.endswith("/admin/users/u-3")
    assert identity.metadata == {"tenant_id": "t-1"}


@pytest.mark.asyncio
async def test_server_errors_are_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if calls < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"users": []})

    assert await _provider(handler).list_users(1, 50) == []
    assert calls == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(422, json={"msg": "A user with this email address has already been registered"})

    with pytest.raises(IdentityProviderError) as excinfo:
        await _provider(handler).create_user("owner@example.com", "pw", {})

    assert excinfo.value.status_code == 422
    assert "already been registered" in str(excinfo.value)
    assert calls == 1


@pytest.mark.asyncio
async def test_network_errors_surface_as_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IdentityProviderError):
        await _provider(handler).list_users(1, 50)


def test_missing_configuration_is_rejected() -> None:
    with pytest.raises(IdentityProviderError):
        GoTrueIdentityProvider(base_url=None, service_key=None)


def test_factory_returns_fake_provider_in_tests() -> None:
    assert isinstance(get_identity_provider(), FakeIdentityProvider)
