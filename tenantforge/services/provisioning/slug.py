from __future__ import annotations

import re
import secrets
import unicodedata
from typing import Awaitable, Callable

from tenantforge.core.errors import ProvisioningError


FALLBACK_SLUG = "tenant"
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str | None, *, max_length: int = 50) -> str:
    # NFD splits accented letters into base + combining mark so the mark can be dropped.
    decomposed = unicodedata.normalize("NFD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    slug = _NON_ALNUM.sub("-", stripped.lower()).strip("-")
    slug = slug[:max_length].rstrip("-")
    return slug or FALLBACK_SLUG


def _with_suffix(base: str, max_length: int) -> str:
    suffix = secrets.token_hex(2)
    head = base[: max(max_length - len(suffix) - 1, 1)].rstrip("-") or FALLBACK_SLUG
    return f"{head}-{suffix}"


async def generate_unique_slug(
    name: str | None,
    slug_exists: Callable[[str], Awaitable[bool]],
    *,
    max_length: int = 50,
    max_attempts: int = 10,
) -> str:
    """Return a slug for ``name`` that ``slug_exists`` reports as free.

    The plain slug is tried first; each collision retries with a random
    4-hex-char suffix. Raises ``ProvisioningError`` once ``max_attempts``
    candidates have all collided.
    """
    base = slugify(name, max_length=max_length)
    candidate = base
    for _ in range(max(max_attempts, 1)):
        if not await slug_exists(candidate):
            return candidate
        candidate = _with_suffix(base, max_length)
    raise ProvisioningError(
        "generate_slug",
        f"slug_exhausted: no free slug for '{base}' after {max_attempts} attempts",
    )
