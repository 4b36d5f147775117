"""
tests.conftest

Shared fixtures: an app bound to a throwaway SQLite file with its lifespan running,
an httpx client over ASGITransport, and helpers to seed accounts and read the audit log.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from pydantic import SecretStr

from iam_core.api.app import create_app
from iam_core.db.models import Account, AuditLog
from iam_core.db.store import IdentityStore
from iam_core.services.accounts import AccountService
from iam_core.settings import Settings

PASSWORD = "correct-horse-battery"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'iam.db'}",
        jwt_secret="test-signing-secret-with-enough-bytes-for-hs256",
    )


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not drive lifespan events; enter it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def make_account(app: FastAPI) -> Callable[..., Awaitable[Account]]:
    async def _make(email: str, *, roles: Sequence[str] = (), password: str = PASSWORD) -> Account:
        async with app.state.sessionmaker() as session:
            service = AccountService(store=IdentityStore(session), issuer=app.state.token_issuer)
            return await service.create(
                email=email,
                password=SecretStr(password),
                first_name="Test",
                last_name="User",
                role_codes=roles,
            )

    return _make


@pytest.fixture
def login_as(client: httpx.AsyncClient) -> Callable[..., Awaitable[dict[str, str]]]:
    """Log an account in and return bearer headers."""

    async def _login(email: str, password: str = PASSWORD) -> dict[str, str]:
        r = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return {"Authorization": f"Bearer {r.json()['tokens']['access_token']}"}

    return _login


@pytest.fixture
def audit_log(app: FastAPI) -> Callable[..., Awaitable[list[AuditLog]]]:
    """Wait for the audit writer to catch up, then return stored records oldest-first."""

    async def _read(action: str | None = None) -> list[AuditLog]:
        await app.state.audit.drain()
        async with app.state.sessionmaker() as session:
            rows = await IdentityStore(session).audit.list_recent(action=action)
        return list(reversed(rows))

    return _read
