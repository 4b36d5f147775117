"""
iam_core.api.routers.health

Health and readiness endpoints. Neither takes a guard, so neither is audited.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`): DB connectivity plus a running audit writer.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from iam_core.api.deps import audit_recorder, db_session
from iam_core.audit.recorder import AuditRecorder

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(
    session: AsyncSession = Depends(db_session),
    audit: AuditRecorder = Depends(audit_recorder),
) -> dict[str, str]:
    await session.execute(text("SELECT 1"))
    if not audit.running:
        raise HTTPException(status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="audit writer stopped")
    return {"status": "ready"}
