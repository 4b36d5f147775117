"""
iam_core.services.accounts

Account lifecycle and password login.

Responsibilities:
- Register and administer accounts (hashing passwords exactly once, here).
- Authenticate email + password and issue a token pair.
- Record login/logout/registration events on the audit trail.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import SecretStr

from iam_core.audit.actions import AuthEvent
from iam_core.audit.records import RequestContext
from iam_core.audit.recorder import AuditRecorder
from iam_core.auth.errors import InvalidCredentials
from iam_core.auth.models import Principal, PrincipalKind, principal_from_account
from iam_core.auth.passwords import DUMMY_PASSWORD_HASH, hash_password, verify_password
from iam_core.auth.tokens import TokenIssuer, TokenPair
from iam_core.db.models import Account, Role, utcnow
from iam_core.db.store import IdentityStore
from iam_core.observability.logging import get_logger
from iam_core.services.errors import Conflict, NotFound

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class LoginResult:
    principal: Principal
    tokens: TokenPair


class AccountService:
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

    async def register(
        self,
        *,
        email: str,
        password: SecretStr,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        ctx: RequestContext | None = None,
    ) -> LoginResult:
        account = await self._create(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            roles=await self._store.roles.defaults(),
        )
        await self._store.commit()

        principal = principal_from_account(account)
        self._emit(AuthEvent.user_register, principal, ctx)
        return LoginResult(principal=principal, tokens=self._issuer.issue(principal))

    async def login(
        self,
        *,
        email: str,
        password: SecretStr,
        ctx: RequestContext | None = None,
    ) -> LoginResult:
        record = await self._store.get_by_email_or_phone(email, PrincipalKind.account)
        # Unknown email, wrong password and inactive account are indistinguishable to callers.
        stored = record.password_hash if isinstance(record, Account) else DUMMY_PASSWORD_HASH
        matched = verify_password(password, stored)
        if not isinstance(record, Account) or not matched:
            log.info("login_failed", kind="account")
            raise InvalidCredentials()
        if not record.is_active:
            log.info("login_failed", kind="account", account_id=str(record.id), reason="inactive")
            raise InvalidCredentials()

        record.last_login_at = utcnow()
        await self._store.commit()

        principal = principal_from_account(record)
        tokens = self._issuer.issue(principal)
        self._emit(AuthEvent.user_login, principal, ctx)
        log.info("login", kind="account", account_id=str(principal.id))
        return LoginResult(principal=principal, tokens=tokens)

    def logout(self, principal: Principal, ctx: RequestContext | None = None) -> None:
        # Tokens are stateless; logout only leaves a trail.
        event = AuthEvent.client_logout if principal.is_client else AuthEvent.user_logout
        self._emit(event, principal, ctx)
        log.info("logout", kind=principal.kind.value, principal_id=str(principal.id))

    async def create(
        self,
        *,
        email: str,
        password: SecretStr,
        first_name: str,
        last_name: str,
        phone: str | None = None,
        role_codes: Sequence[str] = (),
    ) -> Account:
        roles = await self._roles(role_codes)
        account = await self._create(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            roles=roles,
        )
        await self._store.commit()
        return account

    async def update(
        self,
        account_id: uuid.UUID,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        is_active: bool | None = None,
        password: SecretStr | None = None,
        role_codes: Sequence[str] | None = None,
    ) -> Account:
        account = await self._store.accounts.get(account_id)
        if account is None:
            raise NotFound("account not found")
        if first_name:
            account.first_name = first_name
        if last_name:
            account.last_name = last_name
        if phone is not None:
            account.phone = phone or None
        if is_active is not None:
            account.is_active = is_active
        if password is not None:
            account.password_hash = hash_password(password)
        if role_codes is not None:
            account.roles = await self._roles(role_codes)
        await self._store.save(account)
        await self._store.commit()
        return account

    async def delete(self, account_id: uuid.UUID) -> None:
        if not await self._store.soft_delete(account_id, PrincipalKind.account):
            raise NotFound("account not found")
        await self._store.commit()

    async def list_accounts(self) -> list[Account]:
        return await self._store.accounts.list_active()

    async def _create(
        self,
        *,
        email: str,
        password: SecretStr,
        first_name: str,
        last_name: str,
        phone: str | None,
        roles: Sequence[Role],
    ) -> Account:
        if await self._store.accounts.email_taken(email):
            raise Conflict("account with this email already exists")
        if phone and await self._store.accounts.phone_taken(phone):
            raise Conflict("phone number already in use")
        return await self._store.accounts.create(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            roles=roles,
        )

    async def _roles(self, codes: Sequence[str]) -> list[Role]:
        roles = await self._store.roles.by_codes(codes)
        missing = set(codes) - {r.code for r in roles}
        if missing:
            raise ValueError(f"unknown role codes: {sorted(missing)}")
        return roles

    def _emit(self, event: AuthEvent, principal: Principal, ctx: RequestContext | None) -> None:
        if self._audit is not None:
            self._audit.record_auth_event(event, principal, ctx)
