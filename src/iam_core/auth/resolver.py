"""
iam_core.auth.resolver

Credential -> Principal resolution.

Responsibilities:
- Bearer path: verify the token, then reload the subject by (id, kind) so that
  active/verified status and roles always come from the store, never the token.
- API-key path: validate the key and build a client principal holding only CLIENT.
- Record the API-key authentication event on the audit trail.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from iam_core.audit.actions import AuthEvent
from iam_core.audit.records import RequestContext
from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.api_keys import ApiKeyManager
from iam_core.auth.errors import AuthError, Unauthenticated
from iam_core.auth.models import (
    Principal,
    PrincipalKind,
    principal_from_account,
    principal_from_client,
)
from iam_core.auth.tokens import TokenIssuer, TokenType
from iam_core.db.models import Account
from iam_core.db.store import IdentityStore
from iam_core.observability.logging import get_logger

log = get_logger(__name__)


class CredentialScheme(enum.StrEnum):
    bearer = "bearer"
    api_key = "api_key"


@dataclass(frozen=True, slots=True)
class Credential:
    scheme: CredentialScheme
    value: str | None

    def __repr__(self) -> str:
        # Never render the secret itself.
        return f"Credential(scheme={self.scheme.value!r}, present={bool(self.value)})"


class PrincipalResolver:
    def __init__(
        self,
        *,
        store: IdentityStore,
        issuer: TokenIssuer,
        api_keys: ApiKeyManager,
        audit: AuditRecorder | None = None,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._api_keys = api_keys
        self._audit = audit

    async def resolve(self, credential: Credential, ctx: RequestContext | None = None) -> Principal:
        try:
            if credential.scheme == CredentialScheme.api_key:
                return await self._resolve_api_key(credential.value, ctx)
            return await self._resolve_bearer(credential.value)
        except AuthError as e:
            log.info("auth_failed", scheme=credential.scheme.value, code=e.code)
            raise

    async def load(self, subject_id: uuid.UUID, kind: PrincipalKind) -> Principal:
        record = await self._store.get_by_id(subject_id, kind)
        if record is None or not record.is_active:
            raise Unauthenticated("Subject not found or inactive")
        if isinstance(record, Account):
            return principal_from_account(record)
        return principal_from_client(record)

    async def _resolve_bearer(self, token: str | None) -> Principal:
        if not token:
            raise Unauthenticated("Missing bearer token")
        claims = self._issuer.verify(token, expected=TokenType.access)
        return await self.load(claims.subject, claims.kind)

    async def _resolve_api_key(self, raw_key: str | None, ctx: RequestContext | None) -> Principal:
        validated = await self._api_keys.validate(raw_key)
        principal = validated.principal
        if self._audit is not None:
            self._audit.record_auth_event(
                AuthEvent.client_login,
                principal,
                ctx,
                changes={"method": "api_key", "api_key_id": str(validated.api_key_id)},
            )
        return principal


# --- Module Notes -----------------------------------------------------------
# Token refresh reuses `load` (see `auth.tokens.TokenIssuer.refresh`) so both paths
# apply the same freshness rule.
