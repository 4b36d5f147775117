from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import SecretStr
from sqlalchemy import select

from iam_core.auth.api_keys import ApiKeyManager, hash_api_key
from iam_core.auth.errors import ApiKeyExpired, ApiKeyRevoked, ClientInactive, InvalidApiKey
from iam_core.auth.models import PrincipalKind, RoleCode
from iam_core.db.models import ApiKey, Client, utcnow
from iam_core.db.store import IdentityStore
from iam_core.services.clients import ClientService


async def _client(app, email: str = "svc@example.com") -> Client:
    async with app.state.sessionmaker() as session:
        service = ClientService(store=IdentityStore(session), issuer=app.state.token_issuer)
        return await service.create(
            email=email,
            password=SecretStr("client-password-1"),
            first_name="Svc",
            last_name="Client",
        )


@pytest.mark.asyncio
async def test_generate_stores_only_digest(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        store = IdentityStore(session)
        created = await ApiKeyManager(store).generate(owner.id, "ci")
        stored = await store.find_api_key_by_hash(hash_api_key(created.key))

    assert len(created.key) == 64
    assert created.last_four == created.key[-4:]
    assert created.key not in repr(created)
    assert stored is not None
    assert stored.key_hash != created.key
    assert stored.key_hash == hash_api_key(created.key)


@pytest.mark.asyncio
async def test_validate_returns_client_principal_and_touches(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        store = IdentityStore(session)
        manager = ApiKeyManager(store)
        created = await manager.generate(owner.id, "ci")
        validated = await manager.validate(created.key)

    assert validated.client_id == owner.id
    assert validated.principal.kind == PrincipalKind.client
    assert validated.principal.roles == (RoleCode.client.value,)
    assert validated.principal.api_key_id == created.id

    async with app.state.sessionmaker() as session:
        record = await IdentityStore(session).find_api_key_by_hash(hash_api_key(created.key))
    assert record.last_used_at is not None


@pytest.mark.asyncio
async def test_generate_for_unknown_client_fails(app) -> None:
    async with app.state.sessionmaker() as session:
        with pytest.raises(LookupError):
            await ApiKeyManager(IdentityStore(session)).generate(uuid.uuid4(), "ci")


@pytest.mark.asyncio
async def test_validate_failures_are_distinct(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        store = IdentityStore(session)
        manager = ApiKeyManager(store)

        with pytest.raises(InvalidApiKey) as missing:
            await manager.validate(None)
        assert type(missing.value) is InvalidApiKey

        with pytest.raises(InvalidApiKey) as unknown:
            await manager.validate("0" * 64)
        assert type(unknown.value) is InvalidApiKey

        revoked = await manager.generate(owner.id, "old")
        assert await manager.deactivate(revoked.id)
        with pytest.raises(ApiKeyRevoked):
            await manager.validate(revoked.key)

        expired = await manager.generate(owner.id, "short", expires_at=utcnow() + timedelta(hours=1))
        record = await store.find_api_key_by_hash(hash_api_key(expired.key))
        record.expires_at = utcnow() - timedelta(seconds=1)
        await store.commit()
        with pytest.raises(ApiKeyExpired):
            await manager.validate(expired.key)


@pytest.mark.asyncio
async def test_inactive_owner_fails_validation(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        store = IdentityStore(session)
        manager = ApiKeyManager(store)
        created = await manager.generate(owner.id, "ci")

        record = await store.clients.get(owner.id)
        record.is_active = False
        await store.commit()

        with pytest.raises(ClientInactive):
            await manager.validate(created.key)


@pytest.mark.asyncio
async def test_default_ttl_applies(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        created = await ApiKeyManager(IdentityStore(session), default_ttl=timedelta(days=30)).generate(
            owner.id, "ci"
        )
    assert created.expires_at is not None
    assert created.expires_at > utcnow() + timedelta(days=29)


@pytest.mark.asyncio
async def test_deactivate_scoped_to_owner(app) -> None:
    owner = await _client(app)
    other = await _client(app, email="other@example.com")
    async with app.state.sessionmaker() as session:
        manager = ApiKeyManager(IdentityStore(session))
        created = await manager.generate(owner.id, "ci")

        assert not await manager.deactivate(created.id, owner_client_id=other.id)
        assert await manager.deactivate(created.id, owner_client_id=owner.id)



@pytest.mark.asyncio
async def test_each_generated_key_is_unique(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        manager = ApiKeyManager(IdentityStore(session))
        keys = [(await manager.generate(owner.id, f"ci-{i}")).key for i in range(20)]
        digests = (
            await session.execute(select(ApiKey.key_hash).where(ApiKey.client_id == owner.id))
        ).scalars().all()

    assert len(set(keys)) == 20
    assert len(set(digests)) == 20
    assert set(digests) == {hash_api_key(k) for k in keys}


@pytest.mark.asyncio
async def test_generate_rejects_past_expiry(app) -> None:
    owner = await _client(app)
    async with app.state.sessionmaker() as session:
        manager = ApiKeyManager(IdentityStore(session))
        with pytest.raises(ValueError):
            await manager.generate(owner.id, "stale", expires_at=utcnow() - timedelta(minutes=1))
        with pytest.raises(ValueError):
            await manager.generate(
                owner.id, "stale", expires_at=datetime.now(tz=UTC) - timedelta(minutes=1)
            )
        count = len((await session.execute(select(ApiKey.id))).scalars().all())
    assert count == 0


@pytest.mark.asyncio
async def test_timezone_aware_expiry_is_stored_as_naive_utc(app) -> None:
    owner = await _client(app)
    aware = datetime.now(tz=UTC) + timedelta(days=1)
    async with app.state.sessionmaker() as session:
        manager = ApiKeyManager(IdentityStore(session))
        created = await manager.generate(owner.id, "ci", expires_at=aware)
        assert created.expires_at == aware.replace(tzinfo=None)

        validated = await manager.validate(created.key)
    assert validated.client_id == owner.id
