"""
iam_core.db.repositories.api_keys

Repository for `ApiKey` entities.

Responsibilities:
- Persist newly generated key hashes and metadata.
- Look keys up by hash (regardless of state, so callers can tell why a key is unusable).
- Record usage timestamps and deactivate keys.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.db.models import ApiKey


class ApiKeyRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        client_id: uuid.UUID,
        key_hash: str,
        name: str,
        last_four: str,
        expires_at: datetime | None,
    ) -> ApiKey:
        key = ApiKey(
            client_id=client_id,
            key_hash=key_hash,
            name=name,
            last_four=last_four,
            is_active=True,
            expires_at=expires_at,
        )
        self._session.add(key)
        await self._session.flush()
        return key

    async def get_by_hash(self, key_hash: str) -> ApiKey | None:
        stmt = select(ApiKey).where(ApiKey.key_hash == key_hash)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def touch(self, key_id: uuid.UUID, *, when: datetime) -> None:
        # Single UPDATE so concurrent validations of the same key never conflict on a read.
        await self._session.execute(
            update(ApiKey).where(ApiKey.id == key_id).values(last_used_at=when)
        )

    async def deactivate(self, key_id: uuid.UUID, *, client_id: uuid.UUID | None = None) -> bool:
        key = await self._session.get(ApiKey, key_id)
        if key is None or (client_id is not None and key.client_id != client_id):
            return False
        key.is_active = False
        await self._session.flush()
        return True
