from __future__ import annotations

from typing import Any

from amberdist.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _error_response(description: str, *, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {"application/json": {"example": _error_example(code=code, message=message, details=details)}},
    }


DEFAULT_ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    404: _error_response("Not found", code="ALERT_NOT_FOUND", message="Alert 7f3c not found"),
    409: _error_response("Conflict", code="ALERT_INACTIVE", message="Alert AMB-2024-0001 is resolved"),
    422: _error_response(
        "Validation error",
        code="UNKNOWN_CHANNEL",
        message="Unknown distribution channel: carrier_pigeon",
    ),
    500: _error_response("Internal server error", code="INTERNAL_ERROR", message="Internal server error"),
}
