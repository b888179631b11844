from __future__ import annotations

from tenantforge.core.config import get_settings
from tenantforge.providers.identity.base import IdentityProvider
from tenantforge.providers.identity.fake import FakeIdentityProvider
from tenantforge.providers.identity.gotrue import GoTrueIdentityProvider


def get_identity_provider() -> IdentityProvider:
    settings = get_settings()
    provider = (settings.identity_provider or "gotrue").lower()

    if provider == "fake":
        return FakeIdentityProvider()
    return GoTrueIdentityProvider()
