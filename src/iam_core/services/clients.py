"""
iam_core.services.clients

Client lifecycle, password login and email verification.

Responsibilities:
- Create/update/soft-delete clients (hashing passwords exactly once, here).
- Authenticate by email-or-phone + password and issue a token pair.
- Issue and check email verification codes, persisting the outcome explicitly.
"""

from __future__ import annotations

import uuid

from pydantic import SecretStr

from iam_core.audit.actions import AuthEvent
from iam_core.audit.records import RequestContext
from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.errors import InvalidCredentials
from iam_core.auth.models import PrincipalKind, principal_from_client
from iam_core.auth.passwords import DUMMY_PASSWORD_HASH, hash_password, verify_password
from iam_core.auth.tokens import TokenIssuer
from iam_core.db.models import Client, EmailVerificationStatus, utcnow
from iam_core.db.store import IdentityStore
from iam_core.observability.logging import get_logger
from iam_core.services.accounts import LoginResult
from iam_core.services.errors import Conflict, NotFound
from iam_core.services.verification import check_verification_code, issue_verification_code

log = get_logger(__name__)


class ClientService:
    def __init__(
        self,
        *,
        store: IdentityStore,
        issuer: TokenIssuer,
        audit: AuditRecorder | None = None,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._audit = audit

    async def create(
        self,
        *,
        email: str,
        password: SecretStr,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        address: str | None = None,
        is_active: bool = True,
    ) -> Client:
        if await self._store.clients.email_or_phone_taken(email=email, phone=phone):
            raise Conflict("client with this email or phone already exists")
        if phone and await self._store.accounts.phone_taken(phone):
            raise Conflict("phone number already in use")
        client = await self._store.clients.create(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            address=address,
            is_active=is_active,
        )
        await self._store.commit()
        return client

    async def login(
        self,
        *,
        identifier: str,
        password: SecretStr,
        ctx: RequestContext | None = None,
    ) -> LoginResult:
        record = await self._store.get_by_email_or_phone(identifier, PrincipalKind.client)
        stored = record.password_hash if isinstance(record, Client) else DUMMY_PASSWORD_HASH
        matched = verify_password(password, stored)
        if not isinstance(record, Client) or not matched:
            log.info("login_failed", kind="client")
            raise InvalidCredentials()
        if not record.is_active:
            log.info("login_failed", kind="client", client_id=str(record.id), reason="inactive")
            raise InvalidCredentials()

        principal = principal_from_client(record)
        tokens = self._issuer.issue(principal)
        if self._audit is not None:
            self._audit.record_auth_event(
                AuthEvent.client_login, principal, ctx, changes={"method": "password"}
            )
        log.info("login", kind="client", client_id=str(principal.id))
        return LoginResult(principal=principal, tokens=tokens)

    async def get(self, client_id: uuid.UUID) -> Client:
        client = await self._store.clients.get(client_id)
        if client is None:
            raise NotFound("client not found")
        return client

    async def list_clients(self) -> list[Client]:
        return await self._store.clients.list_active()

    async def update(
        self,
        client_id: uuid.UUID,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        is_active: bool | None = None,
        password: SecretStr | None = None,
    ) -> Client:
        client = await self.get(client_id)
        if first_name:
            client.first_name = first_name
        if last_name:
            client.last_name = last_name
        if phone is not None:
            client.phone = phone or None
        if address is not None:
            client.address = address or None
        if is_active is not None:
            client.is_active = is_active
        if password is not None:
            client.password_hash = hash_password(password)
        await self._store.save(client)
        await self._store.commit()
        return client

    async def delete(self, client_id: uuid.UUID) -> None:
        if not await self._store.soft_delete(client_id, PrincipalKind.client):
            raise NotFound("client not found")
        await self._store.commit()

    async def issue_verification_code(self, client_id: uuid.UUID) -> str:
        client = await self.get(client_id)
        issued = issue_verification_code(utcnow())
        client.email_verification_token = issued.code
        client.email_verification_token_expires_at = issued.expires_at
        await self._store.save(client)
        await self._store.commit()
        return issued.code

    async def verify_email(self, client_id: uuid.UUID, code: str) -> bool:
        client = await self.get(client_id)
        now = utcnow()
        ok = check_verification_code(
            stored_code=client.email_verification_token,
            expires_at=client.email_verification_token_expires_at,
            presented=code,
            now=now,
        )
        if not ok:
            return False
        client.email_status = EmailVerificationStatus.verified
        client.verified_at = now
        client.email_verification_token = None
        client.email_verification_token_expires_at = None
        await self._store.save(client)
        await self._store.commit()
        return True
