from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.db.models import Account, Role, utcnow


class AccountRepo:
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
        roles: Sequence[Role] = (),
    ) -> Account:
        account = Account(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_active=True,
            is_verified=False,
            roles=list(roles),
        )
        self._session.add(account)
        await self._session.flush()
        return account

    async def get(self, account_id: uuid.UUID) -> Account | None:
        stmt = select(Account).where(Account.id == account_id, Account.deleted_at.is_(None))
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_email_or_phone(self, identifier: str) -> Account | None:
        stmt = select(Account).where(
            or_(Account.email == identifier, Account.phone == identifier),
            Account.deleted_at.is_(None),
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def email_taken(self, email: str) -> bool:
        stmt = select(Account.id).where(Account.email == email).limit(1)
        return (await self._session.execute(stmt)).first() is not None

    async def phone_taken(self, phone: str) -> bool:
        stmt = select(Account.id).where(Account.phone == phone).limit(1)
        return (await self._session.execute(stmt)).first() is not None

    async def list_active(self, *, limit: int = 200) -> list[Account]:
        stmt = (
            select(Account)
            .where(Account.deleted_at.is_(None))
            .order_by(Account.created_at)
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def soft_delete(self, account_id: uuid.UUID) -> bool:
        account = await self.get(account_id)
        if account is None:
            return False
        account.deleted_at = utcnow()
        account.is_active = False
        await self._session.flush()
        return True
