from __future__ import annotations

import pytest
from pydantic import SecretStr

from iam_core.auth.api_keys import ApiKeyManager
from iam_core.auth.errors import ApiKeyRevoked, InvalidToken, Unauthenticated
from iam_core.auth.models import PrincipalKind, RoleCode, principal_from_account
from iam_core.auth.resolver import Credential, CredentialScheme, PrincipalResolver
from iam_core.db.store import IdentityStore
from iam_core.services.accounts import AccountService
from iam_core.services.clients import ClientService


def _resolver(app, session) -> PrincipalResolver:
    store = IdentityStore(session)
    return PrincipalResolver(
        store=store, issuer=app.state.token_issuer, api_keys=ApiKeyManager(store)
    )


def test_credential_repr_hides_value() -> None:
    cred = Credential(CredentialScheme.bearer, "super-secret-token")
    assert "super-secret-token" not in repr(cred)


@pytest.mark.asyncio
async def test_missing_and_garbage_bearer_rejected(app) -> None:
    async with app.state.sessionmaker() as session:
        resolver = _resolver(app, session)
        with pytest.raises(Unauthenticated):
            await resolver.resolve(Credential(CredentialScheme.bearer, None))
        with pytest.raises(InvalidToken):
            await resolver.resolve(Credential(CredentialScheme.bearer, "not-a-jwt"))


@pytest.mark.asyncio
async def test_bearer_reflects_current_roles_and_status(app, make_account) -> None:
    account = await make_account("emp@example.com", roles=[RoleCode.employee])
    token = app.state.token_issuer.issue(principal_from_account(account)).access_token

    async with app.state.sessionmaker() as session:
        principal = await _resolver(app, session).resolve(
            Credential(CredentialScheme.bearer, token)
        )
    assert principal.roles == ("EMPLOYEE",)

    # Promote; the same token now resolves to the new role set.
    async with app.state.sessionmaker() as session:
        service = AccountService(store=IdentityStore(session), issuer=app.state.token_issuer)
        await service.update(account.id, role_codes=[RoleCode.manager])
    async with app.state.sessionmaker() as session:
        principal = await _resolver(app, session).resolve(
            Credential(CredentialScheme.bearer, token)
        )
    assert principal.roles == ("MANAGER",)

    # Deactivate; the still-unexpired token stops working on the next request.
    async with app.state.sessionmaker() as session:
        service = AccountService(store=IdentityStore(session), issuer=app.state.token_issuer)
        await service.update(account.id, is_active=False)
    async with app.state.sessionmaker() as session:
        with pytest.raises(Unauthenticated):
            await _resolver(app, session).resolve(Credential(CredentialScheme.bearer, token))


@pytest.mark.asyncio
async def test_deleted_account_token_rejected(app, make_account) -> None:
    account = await make_account("gone@example.com")
    token = app.state.token_issuer.issue(principal_from_account(account)).access_token
    async with app.state.sessionmaker() as session:
        await AccountService(store=IdentityStore(session), issuer=app.state.token_issuer).delete(
            account.id
        )
    async with app.state.sessionmaker() as session:
        with pytest.raises(Unauthenticated):
            await _resolver(app, session).resolve(Credential(CredentialScheme.bearer, token))


@pytest.mark.asyncio
async def test_api_key_deactivation_takes_effect_immediately(app) -> None:
    async with app.state.sessionmaker() as session:
        owner = await ClientService(store=IdentityStore(session), issuer=app.state.token_issuer).create(
            email="svc@example.com",
            password=SecretStr("client-password-1"),
            first_name="Svc",
            last_name="Client",
        )
        created = await ApiKeyManager(IdentityStore(session)).generate(owner.id, "ci")

    async with app.state.sessionmaker() as session:
        principal = await _resolver(app, session).resolve(
            Credential(CredentialScheme.api_key, created.key)
        )
    assert principal.kind == PrincipalKind.client
    assert principal.roles == ("CLIENT",)

    async with app.state.sessionmaker() as session:
        assert await ApiKeyManager(IdentityStore(session)).deactivate(created.id)
    async with app.state.sessionmaker() as session:
        with pytest.raises(ApiKeyRevoked):
            await _resolver(app, session).resolve(Credential(CredentialScheme.api_key, created.key))
