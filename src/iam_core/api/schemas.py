"""
iam_core.api.schemas

Request/response models shared by several routers.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field, SecretStr, field_validator

from iam_core.auth.models import Principal
from iam_core.auth.passwords import MAX_PASSWORD_BYTES
from iam_core.auth.tokens import TokenPair

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MIN_PASSWORD_LENGTH = 8


def check_password(value: SecretStr | None) -> SecretStr | None:
    if value is None:
        return None
    size = len(value.get_secret_value().encode("utf-8"))
    if size < MIN_PASSWORD_LENGTH or size > MAX_PASSWORD_BYTES:
        raise ValueError(f"password must be {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_BYTES} bytes")
    return value


class PasswordModel(BaseModel):
    password: SecretStr

    @field_validator("password")
    @classmethod
    def _password_length(cls, v: SecretStr) -> SecretStr:
        return check_password(v)  # type: ignore[return-value]


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> TokenResponse:
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class PrincipalResponse(BaseModel):
    id: uuid.UUID
    email: str
    kind: str
    roles: list[str] = Field(default_factory=list)
    active: bool
    verified: bool

    @classmethod
    def from_principal(cls, p: Principal) -> PrincipalResponse:
        return cls(
            id=p.id,
            email=p.email,
            kind=p.kind.value,
            roles=list(p.roles),
            active=p.active,
            verified=p.verified,
        )


class LoginResponse(BaseModel):
    principal: PrincipalResponse
    tokens: TokenResponse
