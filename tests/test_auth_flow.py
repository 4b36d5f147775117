from __future__ import annotations

import pytest

from iam_core.auth.passwords import DUMMY_PASSWORD_HASH
from iam_core.services import accounts as accounts_service

PASSWORD = "correct-horse-battery"

REGISTER_BODY = {
    "email": "new@example.com",
    "password": PASSWORD,
    "first_name": "New",
    "last_name": "User",
}


@pytest.mark.asyncio
async def test_register_returns_tokens_and_no_roles(client, audit_log) -> None:
    r = await client.post("/api/v1/auth/register", json=REGISTER_BODY)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["principal"]["kind"] == "account"
    assert body["principal"]["roles"] == []
    assert body["tokens"]["token_type"] == "Bearer"

    (row,) = await audit_log()
    assert row.action == "user_register"
    assert row.entity == "auth"
    assert str(row.account_id) == body["principal"]["id"]


@pytest.mark.asyncio
async def test_register_rejects_short_password(client) -> None:
    r = await client.post("/api/v1/auth/register", json={**REGISTER_BODY, "password": "short"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_login_records_exactly_one_event(client, make_account, audit_log) -> None:
    account = await make_account("emp@example.com", roles=["EMPLOYEE"])

    r = await client.post(
        "/api/v1/auth/login", json={"email": "emp@example.com", "password": PASSWORD}
    )
    assert r.status_code == 200, r.text
    assert r.json()["principal"]["roles"] == ["EMPLOYEE"]

    rows = await audit_log()
    assert len(rows) == 1
    assert rows[0].action == "user_login"
    assert rows[0].account_id == account.id
    assert rows[0].entity_id is None


@pytest.mark.asyncio
async def test_failed_login_is_generic_and_unrecorded(client, make_account, audit_log) -> None:
    await make_account("emp@example.com")

    wrong = await client.post(
        "/api/v1/auth/login", json={"email": "emp@example.com", "password": "wrong-password"}
    )
    unknown = await client.post(
        "/api/v1/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
    )
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["detail"] == unknown.json()["detail"] == "Invalid credentials"
    assert await audit_log() == []


@pytest.mark.asyncio
async def test_unknown_email_still_checks_a_password_hash(client, make_account, monkeypatch) -> None:
    await make_account("emp@example.com")
    checked = []
    real_verify = accounts_service.verify_password

    def spy(raw, hashed):
        checked.append(hashed)
        return real_verify(raw, hashed)

    monkeypatch.setattr(accounts_service, "verify_password", spy)

    r = await client.post(
        "/api/v1/auth/login", json={"email": "nobody@example.com", "password": PASSWORD}
    )
    assert r.status_code == 401
    assert checked == [DUMMY_PASSWORD_HASH]

    r = await client.post(
        "/api/v1/auth/login", json={"email": "emp@example.com", "password": "wrong-password"}
    )
    assert r.status_code == 401
    assert len(checked) == 2
    assert checked[1] != DUMMY_PASSWORD_HASH


@pytest.mark.asyncio
async def test_refresh_issues_new_pair(client, make_account) -> None:
    await make_account("emp@example.com")
    login = await client.post(
        "/api/v1/auth/login", json={"email": "emp@example.com", "password": PASSWORD}
    )
    tokens = login.json()["tokens"]

    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200, r.text
    assert r.json()["access_token"] != tokens["access_token"]

    # Access tokens cannot be used as refresh tokens.
    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_fails_for_deactivated_account(client, make_account, login_as) -> None:
    target = await make_account("emp@example.com")
    await make_account("root@example.com", roles=["SUPER_ADMIN"])
    login = await client.post(
        "/api/v1/auth/login", json={"email": "emp@example.com", "password": PASSWORD}
    )
    refresh_token = login.json()["tokens"]["refresh_token"]

    admin = await login_as("root@example.com")
    r = await client.put(f"/api/v1/users/{target.id}", json={"is_active": False}, headers=admin)
    assert r.status_code == 200, r.text

    r = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_profile_and_logout(client, make_account, login_as, audit_log) -> None:
    await make_account("emp@example.com", roles=["EMPLOYEE"])
    headers = await login_as("emp@example.com")

    r = await client.get("/api/v1/auth/profile", headers=headers)
    assert r.status_code == 200
    assert r.json()["email"] == "emp@example.com"

    r = await client.post("/api/v1/auth/logout", headers=headers)
    assert r.status_code == 200

    assert sorted(row.action for row in await audit_log()) == ["user_login", "user_logout"]


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_401(client) -> None:
    r = await client.get("/api/v1/auth/profile")
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"

    r = await client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_user_admin_routes_enforce_roles(client, make_account, login_as, audit_log) -> None:
    await make_account("emp@example.com", roles=["EMPLOYEE"])
    await make_account("mgr@example.com", roles=["MANAGER"])
    emp = await login_as("emp@example.com")
    mgr = await login_as("mgr@example.com")

    assert (await client.get("/api/v1/users", headers=emp)).status_code == 403

    new_user = {**REGISTER_BODY, "roles": ["EMPLOYEE"]}
    r = await client.post("/api/v1/users", json=new_user, headers=mgr)
    assert r.status_code == 201, r.text
    assert r.json()["roles"] == ["EMPLOYEE"]

    # Managers cannot hand out privileged roles.
    r = await client.post(
        "/api/v1/users",
        json={**new_user, "email": "other@example.com", "roles": ["ADMIN"]},
        headers=mgr,
    )
    assert r.status_code == 403

    created = await audit_log(action="user_created")
    assert len(created) == 1
    assert "password" not in created[0].changes


@pytest.mark.asyncio
async def test_unknown_role_code_is_422(client, make_account, login_as) -> None:
    await make_account("root@example.com", roles=["SUPER_ADMIN"])
    root = await login_as("root@example.com")
    r = await client.post(
        "/api/v1/users", json={**REGISTER_BODY, "roles": ["WIZARD"]}, headers=root
    )
    assert r.status_code == 422
