from __future__ import annotations

from typing import Any
from uuid import uuid4

from tenantforge.core.errors import IdentityProviderError
from tenantforge.providers.identity.base import Identity


class FakeIdentityProvider:
    def __init__(self, identities: list[Identity] | None = None) -> None:
        # Insertion-ordered users keep page boundaries deterministic in tests.
        self._users: dict[str, Identity] = {}
        self.passwords: dict[str, str] = {}
        self.pages_requested: list[int] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_list = False
        for identity in identities or []:
            self._users[identity.id] = identity

    @property
    def users(self) -> list[Identity]:
        return list(self._users.values())

    async def list_users(self, page: int, page_size: int) -> list[Identity]:
        self.pages_requested.append(page)
        if self.fail_list:
            raise IdentityProviderError("list_users failed: injected failure", status_code=503)
        start = (max(page, 1) - 1) * page_size
        return self.users[start : start + page_size]

    async def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> Identity:
        if self.fail_create:
            raise IdentityProviderError("create_user failed: injected failure", status_code=500)
        if any((user.email or "").lower() == email.lower() for user in self._users.values()):
            raise IdentityProviderError("A user with this email address has already been registered", status_code=422)
        identity = Identity(id=uuid4().hex, email=email, metadata=dict(metadata))
        self._users[identity.id] = identity
        self.passwords[identity.id] = password
        return identity

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> Identity:
        if self.fail_update:
            raise IdentityProviderError("update_user_metadata failed: injected failure", status_code=500)
        current = self._users.get(user_id)
        if current is None:
            raise IdentityProviderError(f"User {user_id} not found", status_code=404)
        updated = Identity(id=current.id, email=current.email, metadata={**current.metadata, **metadata})
        self._users[user_id] = updated
        return updated
