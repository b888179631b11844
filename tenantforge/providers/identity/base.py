from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class Identity:
    id: str
    email: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    # The admin API offers no server-side email filter; callers page and scan.
    async def list_users(self, page: int, page_size: int) -> list[Identity]:
        ...

    async def create_user(self, email: str, password: str, metadata: dict[str, Any]) -> Identity:
        ...

    async def update_user_metadata(self, user_id: str, metadata: dict[str, Any]) -> Identity:
        ...
