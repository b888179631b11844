from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Protocol
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from tenantforge.core.config import get_settings
from tenantforge.core.errors import ProvisioningLockError


logger = logging.getLogger(__name__)


# Delete only when the stored token is ours so an expired lease never frees a newer holder.
_RELEASE_LUA = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


@dataclass(slots=True)
class LockLease:
    key: str
    token: str
    # False when the backend was unreachable and fail-open let the attempt proceed.
    held: bool = True


class ProvisioningLock(Protocol):
    async def acquire(self, client_id: str) -> LockLease | None:
        ...

    async def release(self, lease: LockLease) -> None:
        ...


class RedisProvisioningLock:
    def __init__(
        self,
        redis: Any | None = None,
        *,
        prefix: str | None = None,
        ttl_s: int | None = None,
        fail_mode: str | None = None,
    ) -> None:
        settings = get_settings()
        self._redis = redis
        self._prefix = prefix or settings.provisioning_lock_prefix
        self._ttl_ms = max(1, int(ttl_s or settings.provisioning_lock_ttl_s)) * 1000
        self._fail_mode = (fail_mode or settings.provisioning_lock_fail_mode or "open").lower()

    def _client(self) -> Any:
        if self._redis is None:
            self._redis = Redis.from_url(get_settings().redis_url, encoding="utf-8", decode_responses=True)
        return self._redis

    def _key(self, client_id: str) -> str:
        return f"{self._prefix}:{client_id}"

    async def acquire(self, client_id: str) -> LockLease | None:
        key = self._key(client_id)
        token = uuid4().hex
        try:
            acquired = await self._client().set(key, token, nx=True, px=self._ttl_ms)
        except (RedisError, OSError) as exc:
            if self._fail_mode == "closed":
                raise ProvisioningLockError(f"Provisioning lock backend unavailable: {exc}") from exc
            logger.warning("provisioning_lock_unavailable client_id=%s fail_mode=open", client_id, exc_info=exc)
            return LockLease(key=key, token=token, held=False)
        if not acquired:
            return None
        return LockLease(key=key, token=token)

    async def release(self, lease: LockLease) -> None:
        if not lease.held:
            return
        try:
            await self._client().eval(_RELEASE_LUA, 1, lease.key, lease.token)
        except (RedisError, OSError) as exc:
            # The TTL frees the key if the release never lands.
            logger.warning("provisioning_lock_release_failed key=%s", lease.key, exc_info=exc)


class InProcessProvisioningLock:
    """Per-client asyncio locks for single-process deployments and tests."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._owners: dict[str, str] = {}

    def is_locked(self, client_id: str) -> bool:
        lock = self._locks.get(client_id)
        return lock is not None and lock.locked()

    async def acquire(self, client_id: str) -> LockLease | None:
        lock = self._locks.setdefault(client_id, asyncio.Lock())
        if lock.locked():
            return None
        await lock.acquire()
        token = uuid4().hex
        self._owners[client_id] = token
        return LockLease(key=client_id, token=token)

    async def release(self, lease: LockLease) -> None:
        lock = self._locks.get(lease.key)
        if lock is None or not lock.locked() or self._owners.get(lease.key) != lease.token:
            return
        self._owners.pop(lease.key, None)
        lock.release()


def get_provisioning_lock() -> ProvisioningLock | None:
    settings = get_settings()
    if not settings.provisioning_lock_enabled:
        return None
    return RedisProvisioningLock()
