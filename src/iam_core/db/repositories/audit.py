"""
iam_core.db.repositories.audit

Repository for `AuditLog` entities.

Responsibilities:
- Append audit records (account, client or anonymous actions).
- Query the audit trail for an actor.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.db.models import AuditLog, utcnow


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        action: str,
        entity: str,
        account_id: uuid.UUID | None = None,
        client_id: uuid.UUID | None = None,
        entity_id: str | None = None,
        changes: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        created_at: datetime | None = None,
    ) -> AuditLog:
        # Audit records are append-only (no update/delete) in normal operation.
        record = AuditLog(
            account_id=account_id,
            client_id=client_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            changes=changes,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=created_at or utcnow(),
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def list_recent(
        self,
        *,
        account_id: uuid.UUID | None = None,
        client_id: uuid.UUID | None = None,
        action: str | None = None,
        limit: int = 200,
    ) -> list[AuditLog]:
        # Newest-first.
        stmt = select(AuditLog).order_by(desc(AuditLog.created_at)).limit(limit)
        if account_id is not None:
            stmt = stmt.where(AuditLog.account_id == account_id)
        if client_id is not None:
            stmt = stmt.where(AuditLog.client_id == client_id)
        if action is not None:
            stmt = stmt.where(AuditLog.action == action)
        return list((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# Written by the audit recorder's background worker in its own session, never
# inside the request transaction.
