from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from iam_core.auth.errors import InvalidToken, Unauthenticated
from iam_core.auth.models import Principal, PrincipalKind
from iam_core.auth.tokens import TokenConfig, TokenIssuer, TokenType
from iam_core.settings import Settings

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def _cfg(**overrides) -> TokenConfig:
    base = dict(alg="HS256", issuer="iam-core", audience="iam-api", secret=SECRET)
    base.update(overrides)
    return TokenConfig(**base)


def _principal(**overrides) -> Principal:
    base = dict(
        id=uuid.uuid4(),
        email="a@example.com",
        kind=PrincipalKind.account,
        roles=("ADMIN",),
        active=True,
        verified=True,
    )
    base.update(overrides)
    return Principal(**base)


def test_empty_secret_rejected() -> None:
    with pytest.raises(ValueError):
        _cfg(secret="")


def test_issue_and_verify_access_token() -> None:
    issuer = TokenIssuer(_cfg())
    p = _principal()
    pair = issuer.issue(p)

    claims = issuer.verify(pair.access_token)
    assert claims.subject == p.id
    assert claims.kind == PrincipalKind.account
    assert claims.roles == ("ADMIN",)
    assert claims.token_type == TokenType.access
    assert pair.expires_in == 3600
    assert pair.token_type == "Bearer"


def test_token_types_are_not_interchangeable() -> None:
    issuer = TokenIssuer(_cfg())
    pair = issuer.issue(_principal())

    with pytest.raises(InvalidToken):
        issuer.verify(pair.refresh_token, expected=TokenType.access)
    with pytest.raises(InvalidToken):
        issuer.verify(pair.access_token, expected=TokenType.refresh)


def test_expired_token_rejected() -> None:
    issuer = TokenIssuer(_cfg())
    long_ago = datetime.now(tz=UTC) - timedelta(days=30)
    pair = issuer.issue(_principal(), now=long_ago)

    with pytest.raises(InvalidToken):
        issuer.verify(pair.access_token)


def test_wrong_audience_or_secret_rejected() -> None:
    token = TokenIssuer(_cfg()).issue(_principal()).access_token

    with pytest.raises(InvalidToken):
        TokenIssuer(_cfg(audience="someone-else")).verify(token)
    with pytest.raises(InvalidToken):
        TokenIssuer(_cfg(secret=SECRET + "-rotated")).verify(token)


def test_token_missing_kind_rejected() -> None:
    now = datetime.now(tz=UTC)
    token = jwt.encode(
        {
            "iss": "iam-core",
            "aud": "iam-api",
            "sub": str(uuid.uuid4()),
            "typ": "access",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=5)).timestamp()),
        },
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidToken):
        TokenIssuer(_cfg()).verify(token)


@pytest.mark.asyncio
async def test_refresh_reloads_subject_and_issues_new_pair() -> None:
    issuer = TokenIssuer(_cfg())
    original = _principal(roles=("EMPLOYEE",))
    pair = issuer.issue(original)
    promoted = _principal(id=original.id, roles=("MANAGER",))

    async def load(subject_id, kind):
        assert subject_id == original.id
        assert kind == PrincipalKind.account
        return promoted

    new_pair = await issuer.refresh(pair.refresh_token, load=load)

    assert new_pair.access_token != pair.access_token
    assert new_pair.refresh_token != pair.refresh_token
    assert issuer.verify(new_pair.access_token).roles == ("MANAGER",)


@pytest.mark.asyncio
async def test_refresh_rejects_access_token_and_inactive_subject() -> None:
    issuer = TokenIssuer(_cfg())
    pair = issuer.issue(_principal())

    async def load_inactive(subject_id, kind):
        raise Unauthenticated("Subject not found or inactive")

    with pytest.raises(InvalidToken):
        await issuer.refresh(pair.access_token, load=load_inactive)
    with pytest.raises(Unauthenticated):
        await issuer.refresh(pair.refresh_token, load=load_inactive)


def test_config_from_settings_parses_durations() -> None:
    settings = Settings(jwt_secret=SECRET, access_token_ttl="PT30M", refresh_token_ttl=86400)
    issuer = TokenIssuer(TokenConfig.from_settings(settings))

    assert issuer.config.access_ttl == timedelta(minutes=30)
    assert issuer.config.refresh_ttl == timedelta(days=1)
    assert issuer.issue(_principal()).expires_in == 1800
    assert SECRET not in repr(settings)
