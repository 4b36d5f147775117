"""
iam_core.auth.errors

Error taxonomy for authentication and authorization.

Responsibilities:
- Give each failure a stable code and a caller-safe message.
- Carry the HTTP status the API layer maps the failure to.
"""

from __future__ import annotations

from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN


class AuthError(Exception):
    status_code: int = HTTP_401_UNAUTHORIZED
    code: str = "unauthenticated"
    message: str = "Not authenticated"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(AuthError):
    pass


class InvalidToken(Unauthenticated):
    code = "invalid_token"
    message = "Invalid or expired token"


class InvalidCredentials(Unauthenticated):
    # Login-path failures share one message so callers cannot probe which part was wrong.
    code = "invalid_credentials"
    message = "Invalid credentials"


class InvalidApiKey(Unauthenticated):
    code = "invalid_api_key"
    message = "Invalid API key"


class ApiKeyRevoked(InvalidApiKey):
    code = "api_key_revoked"
    message = "API key has been deactivated"


class ApiKeyExpired(InvalidApiKey):
    code = "api_key_expired"
    message = "API key has expired"


class ClientInactive(InvalidApiKey):
    code = "client_inactive"
    message = "Client is not active"


class Forbidden(AuthError):
    status_code = HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Insufficient role"


class AuditWriteFailed(Exception):
    """Raised inside the audit writer only; never reaches a caller."""
