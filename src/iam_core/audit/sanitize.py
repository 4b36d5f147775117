from __future__ import annotations

from typing import Any

SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "password_hash",
        "current_password",
        "new_password",
        "email_verification_token",
        "verification_token",
        "token",
        "access_token",
        "refresh_token",
    }
)


def sanitize_changes(body: Any) -> dict[str, Any] | None:
    """
    Copy of a JSON object body with credential fields removed at every depth.
    Non-object and empty bodies yield None.
    """

    if not isinstance(body, dict) or not body:
        return None
    cleaned = _scrub(body)
    return cleaned or None


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: _scrub(v)
            for k, v in value.items()
            if not (isinstance(k, str) and k.lower() in SENSITIVE_FIELDS)
        }
    if isinstance(value, list):
        return [_scrub(v) for v in value]
    return value
