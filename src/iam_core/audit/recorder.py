"""
iam_core.audit.recorder

Best-effort audit writer.

Responsibilities:
- Turn a successful mutating request (or an explicit auth event) into an `AuditEntry`.
- Queue entries on a bounded in-process queue; never block or fail the caller.
- Persist entries from one background worker in its own session; log and drop failures.

Note:
- Delivery is at-most-once. Entries still queued when the process dies are lost.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from iam_core.audit.actions import AUTH_ENTITY, AuthEvent, classify
from iam_core.audit.records import AuditEntry, RequestContext, actor_fields
from iam_core.audit.sanitize import sanitize_changes
from iam_core.auth.errors import AuditWriteFailed
from iam_core.auth.models import Principal
from iam_core.db.session import session_scope
from iam_core.db.store import IdentityStore
from iam_core.observability.logging import get_logger

log = get_logger(__name__)


class AuditRecorder:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_queue: int = 1000,
    ) -> None:
        self._session_factory = session_factory
        self._queue: asyncio.Queue[AuditEntry] = asyncio.Queue(maxsize=max_queue)
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="audit-writer")

    async def stop(self, *, timeout: float = 5.0) -> None:
        # Give queued entries a bounded chance to land, then stop the worker.
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            log.warning("audit_stop_timeout", pending=self._queue.qsize())
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None

    async def drain(self) -> None:
        await self._queue.join()

    def dispatch(self, entry: AuditEntry) -> bool:
        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            log.warning("audit_dropped", action=entry.action, reason="queue_full")
            return False
        return True

    def record(
        self,
        ctx: RequestContext,
        principal: Principal | None,
        body: Any = None,
    ) -> AuditEntry | None:
        """
        Called after a handler completed without error. Read methods and routes
        missing from the action catalogue are skipped.
        """

        classification = classify(ctx)
        if classification is None:
            return None
        entry = AuditEntry(
            action=classification.action,
            entity=classification.entity,
            entity_id=classification.entity_id,
            changes=sanitize_changes(body),
            ip=ctx.ip,
            user_agent=ctx.user_agent,
            **actor_fields(principal),
        )
        self.dispatch(entry)
        return entry

    def record_auth_event(
        self,
        event: AuthEvent,
        principal: Principal,
        ctx: RequestContext | None = None,
        *,
        changes: dict[str, Any] | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            action=event.value,
            entity=AUTH_ENTITY,
            changes=sanitize_changes(changes),
            ip=ctx.ip if ctx else None,
            user_agent=ctx.user_agent if ctx else None,
            **actor_fields(principal),
        )
        self.dispatch(entry)
        return entry

    async def _run(self) -> None:
        while True:
            entry = await self._queue.get()
            try:
                await self._write(entry)
            except AuditWriteFailed:
                log.error("audit_write_failed", action=entry.action, exc_info=True)
            except Exception:
                log.exception("audit_write_failed", action=entry.action)
            finally:
                self._queue.task_done()

    async def _write(self, entry: AuditEntry) -> None:
        try:
            async with session_scope(self._session_factory) as session:
                await IdentityStore(session).append_audit_record(entry)
        except SQLAlchemyError as e:
            raise AuditWriteFailed(str(e)) from e


# --- Module Notes -----------------------------------------------------------
# The recorder is created once per application (see `api.app`) and shared by the
# request guard and the login/logout flows.
