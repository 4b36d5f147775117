"""
iam_core.db.init_db

DB initialization helpers (dev/test convenience).

Responsibilities:
- Create tables for local development and tests.
- Seed the built-in role codes so accounts can be granted roles immediately.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from iam_core.auth.models import RoleCode
from iam_core.db.base import Base
from iam_core.db.models import Role

_ROLE_NAMES = {
    RoleCode.super_admin: "Super Admin",
    RoleCode.admin: "Admin",
    RoleCode.manager: "Manager",
    RoleCode.employee: "Employee",
    RoleCode.client: "Client",
}


async def init_db(engine: AsyncEngine) -> None:
    """
    Dev/test bootstrap: create tables if they don't exist.
    Production should rely on Alembic migrations.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_roles(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        existing = set((await session.execute(select(Role.code))).scalars().all())
        for code, name in _ROLE_NAMES.items():
            if code.value in existing:
                continue
            session.add(Role(code=code.value, name=name, is_default=False))
        await session.commit()
