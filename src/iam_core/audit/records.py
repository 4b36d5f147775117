"""
iam_core.audit.records

Plain data carried from a request to the audit writer.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from starlette.requests import Request

from iam_core.auth.models import Principal, PrincipalKind
from iam_core.db.models import utcnow


@dataclass(frozen=True, slots=True)
class RequestContext:
    method: str
    route_path: str
    path_params: dict[str, Any] = field(default_factory=dict)
    ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> RequestContext:
        route = request.scope.get("route")
        # Prefer the route template ("/api/v1/clients/{id}") over the concrete URL.
        route_path = getattr(route, "path", None) or request.url.path
        return cls(
            method=request.method.upper(),
            route_path=route_path,
            path_params=dict(request.path_params),
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )


@dataclass(frozen=True, slots=True)
class AuditEntry:
    action: str
    entity: str
    account_id: uuid.UUID | None = None
    client_id: uuid.UUID | None = None
    entity_id: str | None = None
    changes: dict[str, Any] | None = None
    ip: str | None = None
    user_agent: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.account_id is not None and self.client_id is not None:
            raise ValueError("an audit entry has at most one actor")


def actor_fields(principal: Principal | None) -> dict[str, uuid.UUID | None]:
    """Exactly one of account_id/client_id for a principal; neither when anonymous."""

    if principal is None:
        return {"account_id": None, "client_id": None}
    if principal.kind == PrincipalKind.client:
        return {"account_id": None, "client_id": principal.id}
    return {"account_id": principal.id, "client_id": None}
