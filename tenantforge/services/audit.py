from __future__ import annotations

import logging
from typing import Any

from tenantforge.core.errors import StoreError
from tenantforge.domain.models import AuditLog
from tenantforge.providers.store.base import RegistryStore


logger = logging.getLogger(__name__)

_SENSITIVE_KEY_PATTERNS = ["api_key", "authorization", "token", "secret", "password", "service_key"]
_REDACTED_VALUE = "[REDACTED]"


def _is_sensitive_key(key: str) -> bool:
    # Match sensitive key fragments case-insensitively to enforce redaction policy.
    lowered = key.lower()
    return any(pattern in lowered for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_metadata(value: Any) -> Any:
    # Recursively scrub sensitive fields while preserving safe structure.
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            if _is_sensitive_key(key):
                sanitized[key] = _REDACTED_VALUE
            else:
                sanitized[key] = sanitize_metadata(raw_value)
        return sanitized
    if isinstance(value, (list, tuple)):
        return [sanitize_metadata(item) for item in value]
    return value


async def record_event(
    store: RegistryStore,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None,
    client_id: str | None = None,
    tenant_id: str | None = None,
    user_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    best_effort: bool = True,
) -> AuditLog | None:
    # Write audit rows best-effort so a failed audit never undoes finished work.
    entry = AuditLog(
        client_id=client_id,
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        new_data_json=sanitize_metadata(metadata or {}),
    )
    try:
        return await store.create_audit_log(entry)
    except StoreError as exc:
        if not best_effort:
            raise
        logger.warning(
            "audit_event_write_failed action=%s entity_id=%s",
            action,
            entity_id,
            exc_info=exc,
        )
        return None
