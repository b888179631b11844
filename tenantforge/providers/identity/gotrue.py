from __future__ import annotations

import logging
from typing import Any

import httpx

from tenantforge.core.config import get_settings
from tenantforge.core.errors import IdentityProviderError
from tenantforge.providers.identity.base import Identity
from tenantforge.services.resilience import RetryPolicy, default_retry_policy, retry_async


logger = logging.getLogger(__name__)


def _retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.NetworkError):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and status >= 500


def _to_identity(payload: dict[str, Any]) -> Identity:
    return Identity(
        id=str(payload["id"]),
        email=payload.get("email"),
        metadata=dict(payload.get("user_metadata") or {}),
    )


class GoTrueIdentityProvider:
    """Admin API client for a GoTrue-compatible auth server.

    Uses the service-role key, so it must only run server-side. Transient
    failures and 5xx responses are retried; everything else surfaces as
    ``IdentityProviderError``.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        service_key: str | None = None,
        policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        resolved_url = base_url or settings.identity_base_url
        resolved_key = service_key or settings.identity_service_key
        if not resolved_url or not resolved_key:
            raise IdentityProviderError("Identity provider base URL and service key are required")
        self._base_url = resolved_url.rstrip("/")
        self._headers = {
            "apikey": resolved_key,
            "Authorization": f"Bearer {resolved_key}",
            "Content-Type": "application/json",
        }
        self._policy = policy or default_retry_policy()
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        timeout = self._policy.timeout_ms / 1000.0

        async def _call() -> dict[str, Any]:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, **kwargs)
            if response.status_code >= 400:
                raise IdentityProviderError(
                    f"{method} {path} responded with status {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                )
            return response.json()

        try:
            return await retry_async(
                _call,
                policy=self._policy,
                retryable=_retryable,
                operation=f"identity.{method.lower()}",
            )
        except IdentityProviderError:
            raise
        except (httpx.HTTPError, TimeoutError, ValueError) as exc:
            logger.warning("identity_request_failed method=%s path=%s", method, path, exc_info=exc)
            raise IdentityProviderError(f"{method} {path} failed: {exc}") from exc

    async def list_users(self, page: int, page_size: int) -> list[Identity]:
        payload = await self._request("GET", "/admin/users", params={"page": page, "per_page": page_size})
        return [_to_identity(user) for user in payload.get("users") or []]

    async def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> Identity:
        payload = await self._request(
            "POST",
            "/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": metadata,
            },
        )
        return _to_identity(payload)

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> Identity:
        payload = await self._request("PUT", f"/admin/users/{user_id}", json={"user_metadata": metadata})
        return _to_identity(payload)
