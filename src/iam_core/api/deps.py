"""
iam_core.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and DB sessions.
- Encapsulate app.state access patterns (sessionmaker, token issuer, audit recorder).
- Assemble request-scoped auth components and services over one session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.api_keys import ApiKeyManager
from iam_core.auth.resolver import PrincipalResolver
from iam_core.auth.tokens import TokenIssuer
from iam_core.db.store import IdentityStore
from iam_core.services.accounts import AccountService
from iam_core.services.clients import ClientService
from iam_core.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The app's own settings, not a fresh env read.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


def token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer  # type: ignore[attr-defined]


def audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def identity_store(session: AsyncSession = Depends(db_session)) -> IdentityStore:
    return IdentityStore(session)


def api_key_manager(
    store: IdentityStore = Depends(identity_store),
    settings: Settings = Depends(settings_dep),
) -> ApiKeyManager:
    return ApiKeyManager(store, default_ttl=settings.api_key_ttl)


def principal_resolver(
    store: IdentityStore = Depends(identity_store),
    issuer: TokenIssuer = Depends(token_issuer),
    api_keys: ApiKeyManager = Depends(api_key_manager),
    audit: AuditRecorder = Depends(audit_recorder),
) -> PrincipalResolver:
    return PrincipalResolver(store=store, issuer=issuer, api_keys=api_keys, audit=audit)


def account_service(
    store: IdentityStore = Depends(identity_store),
    issuer: TokenIssuer = Depends(token_issuer),
    audit: AuditRecorder = Depends(audit_recorder),
) -> AccountService:
    return AccountService(store=store, issuer=issuer, audit=audit)


def client_service(
    store: IdentityStore = Depends(identity_store),
    issuer: TokenIssuer = Depends(token_issuer),
    audit: AuditRecorder = Depends(audit_recorder),
) -> ClientService:
    return ClientService(store=store, issuer=issuer, audit=audit)


# --- Module Notes -----------------------------------------------------------
# FastAPI caches dependencies per request, so the guard, the resolver and the
# services of one request all share a single session and store.
