from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from iam_core.db.models import Role


class RoleRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def by_codes(self, codes: Iterable[str]) -> list[Role]:
        wanted = sorted(set(codes))
        if not wanted:
            return []
        stmt = select(Role).where(Role.code.in_(wanted)).order_by(Role.code)
        return list((await self._session.execute(stmt)).scalars().all())

    async def defaults(self) -> list[Role]:
        stmt = select(Role).where(Role.is_default.is_(True)).order_by(Role.code)
        return list((await self._session.execute(stmt)).scalars().all())
