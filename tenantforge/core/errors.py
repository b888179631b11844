from __future__ import annotations


class TenantForgeError(Exception):
    """Base error for tenantforge."""


class ValidationError(TenantForgeError):
    """Provisioning input rejected before any resource was created."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class StoreError(TenantForgeError):
    """Registry store read/write failure."""


class StoreConflictError(StoreError):
    """Write rejected by a uniqueness or integrity constraint."""


class IdentityProviderError(TenantForgeError):
    """Identity provider request failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProvisioningError(TenantForgeError):
    """Fatal provisioning step failure; the step name identifies where it stopped."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.message = message


class ProvisioningLockError(TenantForgeError):
    """Provisioning lock could not be acquired or the lock backend is unavailable."""


class AssemblyError(TenantForgeError):
    """Component assembly failure."""


class RegistryUnavailableError(AssemblyError):
    """Component registry could not be read."""


class DependencyCycleError(AssemblyError):
    """Component dependencies loop back to a component still being resolved."""

    def __init__(self, component_name: str, chain: list[str]) -> None:
        self.component_name = component_name
        self.chain = list(chain)
        path = " -> ".join([*self.chain, component_name])
        super().__init__(f"Dependency cycle detected at component '{component_name}': {path}")
