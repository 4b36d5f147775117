"""
iam_core.db.store

Persistence facade consumed by the auth core.

Responsibilities:
- Expose the lookups/writes the auth core needs, keyed by principal kind, over one
  request-scoped session.
- Keep the auth core unaware of which repository backs accounts vs. clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.auth.models import PrincipalKind
from iam_core.db.models import Account, ApiKey, AuditLog, Client
from iam_core.db.repositories.accounts import AccountRepo
from iam_core.db.repositories.api_keys import ApiKeyRepo
from iam_core.db.repositories.audit import AuditRepo
from iam_core.db.repositories.clients import ClientRepo
from iam_core.db.repositories.roles import RoleRepo

if TYPE_CHECKING:
    from iam_core.audit.records import AuditEntry


class IdentityStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.accounts = AccountRepo(session)
        self.clients = ClientRepo(session)
        self.roles = RoleRepo(session)
        self.api_keys = ApiKeyRepo(session)
        self.audit = AuditRepo(session)

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def get_by_id(self, subject_id: uuid.UUID, kind: PrincipalKind) -> Account | Client | None:
        if kind == PrincipalKind.client:
            return await self.clients.get(subject_id)
        return await self.accounts.get(subject_id)

    async def get_by_email_or_phone(
        self, identifier: str, kind: PrincipalKind
    ) -> Account | Client | None:
        if kind == PrincipalKind.client:
            return await self.clients.get_by_email_or_phone(identifier)
        return await self.accounts.get_by_email_or_phone(identifier)

    async def save(self, entity: Account | Client | ApiKey) -> None:
        self._session.add(entity)
        await self._session.flush()

    async def soft_delete(self, subject_id: uuid.UUID, kind: PrincipalKind) -> bool:
        if kind == PrincipalKind.client:
            return await self.clients.soft_delete(subject_id)
        return await self.accounts.soft_delete(subject_id)

    async def find_api_key_by_hash(self, key_hash: str) -> ApiKey | None:
        return await self.api_keys.get_by_hash(key_hash)

    async def touch_api_key(self, key_id: uuid.UUID, *, when: datetime) -> None:
        await self.api_keys.touch(key_id, when=when)
        await self._session.commit()

    async def append_audit_record(self, entry: AuditEntry) -> AuditLog:
        return await self.audit.add(
            action=entry.action,
            entity=entry.entity,
            account_id=entry.account_id,
            client_id=entry.client_id,
            entity_id=entry.entity_id,
            changes=entry.changes,
            ip_address=entry.ip,
            user_agent=entry.user_agent,
            created_at=entry.created_at,
        )

    async def commit(self) -> None:
        await self._session.commit()
