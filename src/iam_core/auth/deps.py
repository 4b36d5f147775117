"""
iam_core.auth.deps

FastAPI dependency functions for authentication, authorization and auditing.

Responsibilities:
- Read the credential of the route's scheme (bearer header or API-key header).
- Resolve it into a `Principal` and enforce the route's `RouteRequirement`.
- After the handler returns without error, hand mutating requests to the audit recorder.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED

from iam_core.api.deps import audit_recorder, principal_resolver
from iam_core.audit.actions import READ_METHODS
from iam_core.audit.records import RequestContext
from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.access import PUBLIC, RouteRequirement, authorize
from iam_core.auth.api_keys import API_KEY_HEADER
from iam_core.auth.errors import AuthError
from iam_core.auth.models import Principal, STAFF_ROLES, RoleCode
from iam_core.auth.resolver import Credential, CredentialScheme, PrincipalResolver

_bearer = HTTPBearer(auto_error=False)
_api_key = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def to_http_error(err: AuthError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if err.status_code == HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=err.status_code, detail=err.message, headers=headers)


def guard(requirement: RouteRequirement):
    async def _dep(
        request: Request,
        bearer: HTTPAuthorizationCredentials | None = Depends(_bearer),
        api_key: str | None = Depends(_api_key),
        resolver: PrincipalResolver = Depends(principal_resolver),
        audit: AuditRecorder = Depends(audit_recorder),
    ) -> AsyncIterator[Principal | None]:
        ctx = RequestContext.from_request(request)
        principal: Principal | None = None

        if not requirement.public:
            if requirement.scheme == CredentialScheme.api_key:
                credential = Credential(CredentialScheme.api_key, api_key)
            else:
                credential = Credential(CredentialScheme.bearer, bearer.credentials if bearer else None)
            try:
                principal = await resolver.resolve(credential, ctx)
                authorize(principal, requirement)
            except AuthError as e:
                raise to_http_error(e) from e

        request.state.principal = principal
        body = await _json_body(request) if ctx.method not in READ_METHODS else None

        yield principal

        # Reached only when the handler returned normally; exceptions propagate past here.
        audit.record(ctx, principal, body)

    return _dep


async def _json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


# Shared guards; FastAPI caches each per request, so a route may list one in
# `dependencies=` and also take it as a parameter without resolving twice.
public_route = guard(PUBLIC)
authenticated = guard(RouteRequirement.authenticated())
signed_in = guard(RouteRequirement.authenticated(clients=True))
require_super_admin = guard(RouteRequirement.roles(RoleCode.super_admin))
require_admins = guard(RouteRequirement.roles(RoleCode.super_admin, RoleCode.admin))
require_managers = guard(
    RouteRequirement.roles(RoleCode.super_admin, RoleCode.admin, RoleCode.manager)
)
require_client = guard(RouteRequirement.roles(RoleCode.client))
require_client_or_staff = guard(RouteRequirement.roles(RoleCode.client, *STAFF_ROLES))
require_api_key = guard(RouteRequirement.api_key())


# --- Module Notes -----------------------------------------------------------
# Every non-health route depends on exactly one guard; that guard is also the only
# place request-level audit records are produced.
