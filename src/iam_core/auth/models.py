"""
iam_core.auth.models

Auth domain models.

Responsibilities:
- Define the resolved caller identity (`Principal`) injected into endpoints.
- Define principal kinds and the built-in role codes.
- Build principals from persisted account/client records (pure functions).
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from iam_core.db.models import Account, Client


class PrincipalKind(enum.StrEnum):
    account = "account"
    client = "client"


class RoleCode(enum.StrEnum):
    # Built-in codes seeded in dev/test. Role codes are opaque strings; other codes
    # created through role management are equally valid.
    super_admin = "SUPER_ADMIN"
    admin = "ADMIN"
    manager = "MANAGER"
    employee = "EMPLOYEE"
    client = "CLIENT"


STAFF_ROLES: tuple[str, ...] = (
    RoleCode.super_admin,
    RoleCode.admin,
    RoleCode.manager,
    RoleCode.employee,
)


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authoritative identity of a caller for one request.

    Always built from persisted state, never from token claims alone.
    `roles` keeps the store's ordering and contains no duplicates.
    """

    id: uuid.UUID
    email: str
    kind: PrincipalKind
    roles: tuple[str, ...]
    active: bool
    verified: bool
    api_key_id: uuid.UUID | None = None

    @property
    def is_client(self) -> bool:
        return self.kind == PrincipalKind.client

    def has_role(self, code: str) -> bool:
        return code in self.roles


def principal_from_account(account: Account) -> Principal:
    codes = tuple(dict.fromkeys(r.code for r in account.roles))
    return Principal(
        id=account.id,
        email=account.email,
        kind=PrincipalKind.account,
        roles=codes,
        active=account.is_active,
        verified=account.is_verified,
    )


def principal_from_client(client: Client, *, api_key_id: uuid.UUID | None = None) -> Principal:
    # A client's role set is exactly {CLIENT}, whatever else the record says.
    return Principal(
        id=client.id,
        email=client.email,
        kind=PrincipalKind.client,
        roles=(RoleCode.client.value,),
        active=client.is_active,
        verified=client.is_verified,
        api_key_id=api_key_id,
    )


# --- Module Notes -----------------------------------------------------------
# Keep this model minimal; it is used across API, services and the audit recorder.
