"""
iam_core.audit.actions

Audit action catalogue.

Responsibilities:
- Map `(resource, HTTP method)` pairs to named actions.
- Name the authentication events recorded explicitly by the login/logout flows.
- Classify a request; anything not in the catalogue is not audited.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from iam_core.audit.records import RequestContext

READ_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_VERSION_SEGMENT = re.compile(r"^v\d+$")


class AuthEvent(enum.StrEnum):
    user_login = "user_login"
    user_logout = "user_logout"
    user_register = "user_register"
    client_login = "client_login"
    client_logout = "client_logout"


AUTH_ENTITY = "auth"

# Resource is the route template below the API prefix with path parameters dropped:
# "/api/v1/clients/{id}" -> "clients", "/api/v1/clients/api-keys" -> "clients/api-keys".
AUDIT_ACTIONS: dict[tuple[str, str], str] = {
    ("clients", "POST"): "client_created",
    ("clients", "PUT"): "client_updated",
    ("clients", "DELETE"): "client_deleted",
    ("clients/api-keys", "POST"): "api_key_created",
    ("clients/api-keys", "DELETE"): "api_key_deactivated",
    ("clients/verify-email", "POST"): "client_email_verified",
    ("users", "POST"): "user_created",
    ("users", "PUT"): "user_updated",
    ("users", "DELETE"): "user_deleted",
}


@dataclass(frozen=True, slots=True)
class Classification:
    action: str
    entity: str
    entity_id: str | None


def resource_of(route_path: str) -> str:
    segments = [s for s in route_path.split("/") if s]
    if segments and segments[0] == "api":
        segments = segments[1:]
    if segments and _VERSION_SEGMENT.match(segments[0]):
        segments = segments[1:]
    return "/".join(s for s in segments if not s.startswith("{"))


def classify(ctx: RequestContext) -> Classification | None:
    method = ctx.method.upper()
    if method in READ_METHODS:
        return None
    resource = resource_of(ctx.route_path)
    action = AUDIT_ACTIONS.get((resource, method))
    if action is None:
        return None
    raw_id = ctx.path_params.get("id") or ctx.path_params.get("key_id")
    return Classification(
        action=action,
        entity=resource.split("/", 1)[0],
        entity_id=str(raw_id) if raw_id is not None else None,
    )


# --- Module Notes -----------------------------------------------------------
# There is no generic "<method>_<entity>" fallback; new mutating routes must be added
# to AUDIT_ACTIONS to be audited.
