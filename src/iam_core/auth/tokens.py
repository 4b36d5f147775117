"""
iam_core.auth.tokens

Token issuing, verification and refresh.

Responsibilities:
- Issue signed access/refresh token pairs carrying subject id, principal kind and a
  role-code snapshot.
- Decode and validate tokens with strict claim requirements (iss/aud/exp/iat/sub/typ).
- Exchange a refresh token for a brand-new pair after re-checking the subject.

Note:
- Tokens are stateless. There is no revocation store, so a refresh token stays usable
  until it expires even after it has been exchanged once.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from iam_core.auth.errors import InvalidToken
from iam_core.auth.models import Principal, PrincipalKind
from iam_core.settings import Settings

PrincipalLoader = Callable[[uuid.UUID, PrincipalKind], Awaitable[Principal]]


class TokenType(enum.StrEnum):
    access = "access"
    refresh = "refresh"


@dataclass(frozen=True, slots=True)
class TokenConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str
    access_ttl: timedelta = timedelta(hours=1)
    refresh_ttl: timedelta = timedelta(days=7)

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("token signing secret must not be empty")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )


@dataclass(frozen=True, slots=True)
class Claims:
    subject: uuid.UUID
    kind: PrincipalKind
    roles: tuple[str, ...]
    token_type: TokenType
    token_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenIssuer:
    def __init__(self, cfg: TokenConfig) -> None:
        self._cfg = cfg

    @property
    def config(self) -> TokenConfig:
        return self._cfg

    def issue(self, principal: Principal, *, now: datetime | None = None) -> TokenPair:
        now = now or datetime.now(tz=UTC)
        return TokenPair(
            access_token=self._encode(principal, TokenType.access, now, self._cfg.access_ttl),
            refresh_token=self._encode(principal, TokenType.refresh, now, self._cfg.refresh_ttl),
            expires_in=int(self._cfg.access_ttl.total_seconds()),
        )

    def verify(self, token: str, *, expected: TokenType = TokenType.access) -> Claims:
        try:
            payload = jwt.decode(
                token,
                self._cfg.secret,
                algorithms=[self._cfg.alg],
                issuer=self._cfg.issuer,
                audience=self._cfg.audience,
                options={"require": ["exp", "iat", "iss", "aud", "sub", "typ", "kind"]},
            )
        except InvalidTokenError as e:
            raise InvalidToken() from e

        # A refresh token must never pass as an access token and vice versa.
        if payload.get("typ") != expected.value:
            raise InvalidToken()
        return _claims_from_payload(payload)

    async def refresh(self, refresh_token: str, *, load: PrincipalLoader) -> TokenPair:
        """
        `load` re-reads the subject from the store and raises `Unauthenticated` when it
        is missing or inactive; roles in the new pair come from that fresh read.
        """

        claims = self.verify(refresh_token, expected=TokenType.refresh)
        principal = await load(claims.subject, claims.kind)
        return self.issue(principal)

    def _encode(
        self, principal: Principal, typ: TokenType, now: datetime, ttl: timedelta
    ) -> str:
        payload: dict[str, Any] = {
            "iss": self._cfg.issuer,
            "aud": self._cfg.audience,
            "sub": str(principal.id),
            "kind": principal.kind.value,
            "roles": list(principal.roles),
            "typ": typ.value,
            "jti": uuid.uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
        }
        return jwt.encode(payload, self._cfg.secret, algorithm=self._cfg.alg)


def _claims_from_payload(payload: dict[str, Any]) -> Claims:
    roles_raw = payload.get("roles", [])
    if not isinstance(roles_raw, list):
        raise InvalidToken()
    try:
        subject = uuid.UUID(str(payload["sub"]))
        kind = PrincipalKind(payload["kind"])
    except (KeyError, ValueError) as e:
        raise InvalidToken() from e
    return Claims(
        subject=subject,
        kind=kind,
        roles=tuple(str(r) for r in roles_raw),
        token_type=TokenType(payload["typ"]),
        token_id=str(payload.get("jti", "")),
        issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
        expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
    )


# --- Module Notes -----------------------------------------------------------
# The role snapshot in a token is informational only; the resolver always reloads
# roles and active status from the store before authorizing a request.
