from __future__ import annotations

import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.db.models import Client, EmailVerificationStatus, utcnow


class ClientRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        address: str | None = None,
        is_active: bool = True,
    ) -> Client:
        client = Client(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            address=address,
            is_active=is_active,
            email_status=EmailVerificationStatus.not_verified,
        )
        self._session.add(client)
        await self._session.flush()
        return client

    async def get(self, client_id: uuid.UUID) -> Client | None:
        stmt = select(Client).where(Client.id == client_id, Client.deleted_at.is_(None))
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_email_or_phone(self, identifier: str) -> Client | None:
        # Identifiers containing "@" are emails; anything else is treated as a phone number.
        column = Client.email if "@" in identifier else Client.phone
        stmt = select(Client).where(column == identifier, Client.deleted_at.is_(None))
        return (await self._session.execute(stmt)).scalars().first()

    async def email_or_phone_taken(self, *, email: str, phone: str | None) -> bool:
        cond = Client.email == email
        if phone:
            cond = or_(cond, Client.phone == phone)
        stmt = select(Client.id).where(cond).limit(1)
        return (await self._session.execute(stmt)).first() is not None

    async def list_active(self, *, limit: int = 200) -> list[Client]:
        stmt = (
            select(Client)
            .where(Client.deleted_at.is_(None))
            .order_by(Client.created_at)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def soft_delete(self, client_id: uuid.UUID) -> bool:
        client = await self.get(client_id)
        if client is None:
            return False
        client.deleted_at = utcnow()
        client.is_active = False
        await self._session.flush()
        return True
