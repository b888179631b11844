from __future__ import annotations

import pytest

from tenantforge.core.config import get_settings
from tenantforge.providers.store.factory import reset_memory_store


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch) -> None:
    # Pin every test to in-process collaborators; nothing reaches Postgres, Redis or GoTrue.
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("IDENTITY_PROVIDER", "fake")
    monkeypatch.setenv("PROVISIONING_LOCK_ENABLED", "false")
    get_settings.cache_clear()
    reset_memory_store()
    yield
    get_settings.cache_clear()
    reset_memory_store()
