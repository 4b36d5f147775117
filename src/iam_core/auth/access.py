"""
iam_core.auth.access

Route requirements and the authorization decision.

Responsibilities:
- Describe what a route demands as plain data (`RouteRequirement`).
- Decide allow/deny for a resolved principal.

Policy (set overlap, no hierarchy):
- Public routes always pass and skip credential resolution entirely.
- A non-public route with no resolved principal is forbidden.
- Client principals pass only when CLIENT is one of the required roles.
- Account principals pass when they hold at least one required role. A higher role
  does not imply a lower one: ADMIN satisfies an EMPLOYEE-only route only if ADMIN
  is listed too.
- `authenticated()` admits any active account whatever its roles; clients still need
  CLIENT listed, so a client reaches such a route only via `authenticated(clients=True)`.
- A non-public route that names no roles and no account rule denies everyone.
"""

from __future__ import annotations

from dataclasses import dataclass

from iam_core.auth.errors import Forbidden
from iam_core.auth.models import Principal, PrincipalKind, RoleCode
from iam_core.auth.resolver import CredentialScheme
from iam_core.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RouteRequirement:
    public: bool = False
    required_roles: frozenset[str] = frozenset()
    any_account: bool = False
    scheme: CredentialScheme = CredentialScheme.bearer

    @classmethod
    def anyone(cls) -> RouteRequirement:
        return cls(public=True)

    @classmethod
    def authenticated(cls, *, clients: bool = False) -> RouteRequirement:
        required = frozenset({RoleCode.client.value}) if clients else frozenset()
        return cls(required_roles=required, any_account=True)

    @classmethod
    def roles(cls, *codes: str, scheme: CredentialScheme = CredentialScheme.bearer) -> RouteRequirement:
        if not codes:
            raise ValueError("roles() needs at least one role code")
        return cls(required_roles=frozenset(str(c) for c in codes), scheme=scheme)

    @classmethod
    def api_key(cls) -> RouteRequirement:
        return cls.roles(RoleCode.client, scheme=CredentialScheme.api_key)


PUBLIC = RouteRequirement.anyone()


def is_allowed(principal: Principal | None, requirement: RouteRequirement) -> bool:
    if requirement.public:
        return True
    if principal is None or not principal.active:
        return False
    required = requirement.required_roles
    if principal.kind == PrincipalKind.client:
        # Whatever role strings a client carries, only an explicit CLIENT grant counts.
        return RoleCode.client.value in required
    if requirement.any_account:
        return True
    return any(code in required for code in principal.roles)


def authorize(principal: Principal | None, requirement: RouteRequirement) -> None:
    if is_allowed(principal, requirement):
        return
    log.info(
        "access_denied",
        principal_id=str(principal.id) if principal else None,
        kind=principal.kind.value if principal else None,
        required=sorted(requirement.required_roles),
    )
    raise Forbidden()
