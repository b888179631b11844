from __future__ import annotations

from tenantforge.core.config import get_settings
from tenantforge.core.errors import StoreError
from tenantforge.providers.store.base import RegistryStore
from tenantforge.providers.store.memory import InMemoryRegistryStore


_memory_store: InMemoryRegistryStore | None = None


def get_registry_store() -> RegistryStore:
    settings = get_settings()
    backend = (settings.store_backend or "sql").lower()

    if backend == "memory":
        # Share one dict-backed store per process so dev requests see each other's writes.
        global _memory_store
        if _memory_store is None:
            _memory_store = InMemoryRegistryStore()
        return _memory_store
    if backend == "sql":
        # Import lazily so memory-backed runs never build a database engine.
        from tenantforge.providers.store.sql import SqlRegistryStore

        return SqlRegistryStore()
    raise StoreError(f"Unsupported store backend: {settings.store_backend}")


def reset_memory_store() -> None:
    # Drop the shared dev store for deterministic tests.
    global _memory_store
    _memory_store = None
