"""
iam_core.api.app

FastAPI app factory for the IAM core service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Initialize and dispose shared infrastructure (DB engine/session factory, token
  issuer, audit writer).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from iam_core import __version__
from iam_core.api.routers.auth import router as auth_router
from iam_core.api.routers.clients import router as clients_router
from iam_core.api.routers.health import router as health_router
from iam_core.api.routers.users import router as users_router
from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.tokens import TokenConfig, TokenIssuer
from iam_core.db.init_db import init_db, seed_roles
from iam_core.db.session import create_engine, create_sessionmaker
from iam_core.observability.logging import configure_logging, get_logger
from iam_core.observability.middleware import RequestContextMiddleware
from iam_core.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    # Configure structured logging once at process startup (before app serves requests).
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    # Fails fast on an empty signing secret, before anything is served.
    issuer = TokenIssuer(TokenConfig.from_settings(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        session_factory = create_sessionmaker(engine)
        app.state.engine = engine
        app.state.sessionmaker = session_factory
        if settings.env in ("dev", "test"):
            # Dev/test convenience: create tables automatically. Prod should use Alembic migrations.
            await init_db(engine)
            if settings.seed_default_roles:
                await seed_roles(session_factory)

        audit = AuditRecorder(session_factory, max_queue=settings.audit_queue_size)
        await audit.start()
        app.state.audit = audit
        try:
            yield
        finally:
            await audit.stop()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="IAM Core",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_issuer = issuer

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(clients_router)

    return app


# --- Module Notes -----------------------------------------------------------
# App composition stays here; authentication, authorization and auditing live in
# `auth`/`audit` and are attached to routes through the guards in `auth.deps`.
