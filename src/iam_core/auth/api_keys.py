"""
iam_core.auth.api_keys

Long-lived client secrets.

Responsibilities:
- Generate 256-bit random keys, store only their SHA-256 digest plus display metadata,
  and hand the plaintext back exactly once.
- Validate presented keys: unknown, deactivated, expired and inactive-owner keys each
  fail with their own error.
- Record `last_used_at` on every successful validation (best-effort).
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from iam_core.auth.errors import ApiKeyExpired, ApiKeyRevoked, ClientInactive, InvalidApiKey
from iam_core.auth.models import Principal, principal_from_client
from iam_core.db.models import utcnow
from iam_core.db.store import IdentityStore
from iam_core.observability.logging import get_logger

log = get_logger(__name__)

API_KEY_HEADER = "x-api-key"
KEY_BYTES = 32


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class GeneratedApiKey:
    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    last_four: str
    is_active: bool
    expires_at: datetime | None
    created_at: datetime
    # Plaintext; shown to the caller once and never persisted or logged.
    key: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class ValidatedApiKey:
    api_key_id: uuid.UUID
    name: str
    last_four: str
    # Built from the owning client record at validation time.
    principal: Principal

    @property
    def client_id(self) -> uuid.UUID:
        return self.principal.id


class ApiKeyManager:
    def __init__(self, store: IdentityStore, *, default_ttl: timedelta | None = None) -> None:
        self._store = store
        self._default_ttl = default_ttl

    async def generate(
        self,
        owner_client_id: uuid.UUID,
        name: str,
        *,
        expires_at: datetime | None = None,
    ) -> GeneratedApiKey:
        owner = await self._store.clients.get(owner_client_id)
        if owner is None or not owner.is_active:
            raise LookupError("client not found")

        now = utcnow()
        if expires_at is not None and expires_at.tzinfo is not None:
            # Stored and compared as naive UTC.
            expires_at = expires_at.astimezone(UTC).replace(tzinfo=None)
        if expires_at is not None and expires_at <= now:
            raise ValueError("expires_at must be in the future")
        if expires_at is None and self._default_ttl is not None:
            expires_at = now + self._default_ttl

        raw_key = secrets.token_hex(KEY_BYTES)
        record = await self._store.api_keys.add(
            client_id=owner.id,
            key_hash=hash_api_key(raw_key),
            name=name,
            last_four=raw_key[-4:],
            expires_at=expires_at,
        )
        await self._store.commit()
        log.info("api_key_generated", api_key_id=str(record.id), client_id=str(owner.id))

        return GeneratedApiKey(
            id=record.id,
            client_id=owner.id,
            name=record.name,
            last_four=record.last_four,
            is_active=record.is_active,
            expires_at=record.expires_at,
            created_at=record.created_at,
            key=raw_key,
        )

    async def validate(self, raw_key: str | None) -> ValidatedApiKey:
        if not raw_key:
            raise InvalidApiKey("API key is required")

        record = await self._store.find_api_key_by_hash(hash_api_key(raw_key))
        if record is None:
            log.info("api_key_rejected", reason="unknown")
            raise InvalidApiKey()
        if not record.is_active:
            log.info("api_key_rejected", reason="deactivated", api_key_id=str(record.id))
            raise ApiKeyRevoked()

        now = utcnow()
        # No grace period: a key is unusable from the instant it expires.
        if record.expires_at is not None and record.expires_at <= now:
            log.info("api_key_rejected", reason="expired", api_key_id=str(record.id))
            raise ApiKeyExpired()

        owner = record.client
        if owner is None or owner.deleted_at is not None or not owner.is_active:
            log.info("api_key_rejected", reason="client_inactive", api_key_id=str(record.id))
            raise ClientInactive()

        validated = ValidatedApiKey(
            api_key_id=record.id,
            name=record.name,
            last_four=record.last_four,
            principal=principal_from_client(owner, api_key_id=record.id),
        )
        await self._touch(record.id, now)
        return validated

    async def deactivate(
        self, key_id: uuid.UUID, *, owner_client_id: uuid.UUID | None = None
    ) -> bool:
        # Permanent: there is no operation that re-activates a key.
        ok = await self._store.api_keys.deactivate(key_id, client_id=owner_client_id)
        if ok:
            await self._store.commit()
            log.info("api_key_deactivated", api_key_id=str(key_id))
        return ok

    async def _touch(self, key_id: uuid.UUID, now: datetime) -> None:
        try:
            await self._store.touch_api_key(key_id, when=now)
        except SQLAlchemyError:
            # Usage tracking must not fail an otherwise valid request.
            await self._store.session.rollback()
            log.warning("api_key_touch_failed", api_key_id=str(key_id), exc_info=True)


# --- Module Notes -----------------------------------------------------------
# Key rotation is explicit: callers generate a new key and deactivate the old one.
