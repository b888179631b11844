from __future__ import annotations

from typing import Any

from tenantforge.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, *, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message, details=details)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    404: _response("Not found", code="CLIENT_NOT_FOUND", message="Client not found"),
    409: _response("Conflict", code="PROVISIONING_IN_PROGRESS", message="Provisioning already in progress"),
    422: _response(
        "Validation error",
        code="VALIDATION_ERROR",
        message="Unsupported vertical 'bakery'",
        details={"field": "vertical"},
    ),
    500: _response(
        "Provisioning failed",
        code="PROVISIONING_FAILED",
        message="Failed to create headquarters branch",
        details={"step": "create_branches"},
    ),
    503: _response("Service unavailable", code="REGISTRY_UNAVAILABLE", message="Component registry unavailable"),
}
