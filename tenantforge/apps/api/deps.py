from __future__ import annotations

from tenantforge.providers.identity.base import IdentityProvider
from tenantforge.providers.identity.factory import get_identity_provider
from tenantforge.providers.store.base import RegistryStore
from tenantforge.providers.store.factory import get_registry_store
from tenantforge.services.provisioning.locks import ProvisioningLock, get_provisioning_lock


# Thin wrappers so tests can swap collaborators via app.dependency_overrides.
def get_store() -> RegistryStore:
    return get_registry_store()


def get_identity() -> IdentityProvider:
    return get_identity_provider()


def get_lock() -> ProvisioningLock | None:
    return get_provisioning_lock()
