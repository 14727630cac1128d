# tests/test_auth_api.py
import os
from datetime import timedelta

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from scripts.generate_reset_token import run as token_run
from scripts.reset_admin_password import run as reset_run
from scripts.unlock_admin import run as unlock_run
from shipportal.core.models import AuditLog, RefreshToken, utcnow
from shipportal.main import app

from conftest import add_user, get_user


@pytest.fixture()
def client(migrated):
    with TestClient(app) as c:
        yield c


def login(client: TestClient, username: str, password: str, expect: int = 200) -> dict:
    r = client.post("/api/auth/login", json={"username": username, "password": password})
    assert r.status_code == expect, r.text
    return r.json()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "x-request-id" in r.headers


def test_login_success_returns_tokens_and_flag(client, engine):
    add_user(engine, "clerk", "Clerk#123", role="accounts")
    body = login(client, "clerk", "Clerk#123")

    assert body["user"]["username"] == "clerk"
    assert body["user"]["mustChangePassword"] is False
    payload = jwt.decode(body["accessToken"], os.environ["JWT_SECRET"], algorithms=["HS256"])
    assert payload["username"] == "clerk"
    assert payload["role"] == "accounts"
    assert payload["type"] == "access"

    with Session(engine) as db:
        assert db.query(RefreshToken).count() == 1
        assert db.query(AuditLog).filter(AuditLog.action == "LOGIN_SUCCESS").count() == 1
    assert get_user(engine, "clerk").last_login is not None


def test_login_requires_fields(client):
    r = client.post("/api/auth/login", json={"username": "clerk"})
    assert r.status_code == 400


def test_unknown_user_and_inactive_user(client, engine):
    login(client, "ghost", "whatever", expect=401)
    add_user(engine, "retired", "Retired#1", role="accounts", is_active=False)
    login(client, "retired", "Retired#1", expect=403)


def test_lockout_after_max_attempts_and_unlock_script(client, engine):
    add_user(engine, "admin", "Admin#999")
    for _ in range(5):
        login(client, "admin", "wrong", expect=401)

    admin = get_user(engine, "admin")
    assert admin.failed_login_attempts == 5
    assert admin.locked_until is not None

    # 口令正确也被拒绝，直到解锁
    login(client, "admin", "Admin#999", expect=423)

    unlock_run()
    login(client, "admin", "Admin#999")
    assert get_user(engine, "admin").failed_login_attempts == 0


def test_expired_lock_restarts_attempt_count(client, engine):
    add_user(engine, "admin", "Admin#999", failed_login_attempts=5,
             locked_until=utcnow() - timedelta(minutes=1))

    # 锁定已过期：一次输错只记一次，不会立刻再次锁定
    login(client, "admin", "wrong", expect=401)
    admin = get_user(engine, "admin")
    assert admin.failed_login_attempts == 1
    assert admin.locked_until is None

    login(client, "admin", "Admin#999")
    assert get_user(engine, "admin").failed_login_attempts == 0


def test_reset_script_then_forced_change_without_current_password(client, engine):
    add_user(engine, "admin", "Forgotten#1")
    reset_run()

    body = login(client, "admin", "Admin@123")
    assert body["user"]["mustChangePassword"] is True
    token = body["accessToken"]

    r = client.post("/api/auth/change-password", headers=auth(token), json={"newPassword": "Fresh#Pass9"})
    assert r.status_code == 200, r.text
    assert get_user(engine, "admin").must_change_password is False

    login(client, "admin", "Admin@123", expect=401)
    login(client, "admin", "Fresh#Pass9")


def test_change_password_requires_current_when_not_forced(client, engine):
    add_user(engine, "clerk", "Clerk#123", role="accounts")
    token = login(client, "clerk", "Clerk#123")["accessToken"]

    r = client.post("/api/auth/change-password", headers=auth(token), json={"newPassword": "Better#Pass1"})
    assert r.status_code == 400

    r = client.post("/api/auth/change-password", headers=auth(token),
                    json={"currentPassword": "nope", "newPassword": "Better#Pass1"})
    assert r.status_code == 401

    r = client.post("/api/auth/change-password", headers=auth(token),
                    json={"currentPassword": "Clerk#123", "newPassword": "weak"})
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "Weak password"

    r = client.post("/api/auth/change-password", headers=auth(token),
                    json={"currentPassword": "Clerk#123", "newPassword": "Better#Pass1"})
    assert r.status_code == 200


def test_reset_password_with_token(client, engine):
    add_user(engine, "clerk", "Clerk#123", role="accounts")
    refresh = login(client, "clerk", "Clerk#123")["refreshToken"]
    issued = token_run("clerk")

    r = client.post("/api/auth/reset-password", json={"token": issued.token, "newPassword": "Reset#Pass1"})
    assert r.status_code == 200, r.text

    # 令牌只能用一次；刷新令牌全部失效
    r = client.post("/api/auth/reset-password", json={"token": issued.token, "newPassword": "Again#Pass1"})
    assert r.status_code == 400
    r = client.post("/api/auth/refresh", json={"refreshToken": refresh})
    assert r.status_code == 401

    login(client, "clerk", "Reset#Pass1")


def test_refresh_rotates_token(client, engine):
    add_user(engine, "clerk", "Clerk#123", role="accounts")
    first = login(client, "clerk", "Clerk#123")["refreshToken"]

    r = client.post("/api/auth/refresh", json={"refreshToken": first})
    assert r.status_code == 200, r.text
    second = r.json()["refreshToken"]
    assert second != first

    assert client.post("/api/auth/refresh", json={"refreshToken": first}).status_code == 401
    assert client.post("/api/auth/refresh", json={}).status_code == 400


def test_me_and_logout(client, engine):
    add_user(engine, "clerk", "Clerk#123", role="accounts")
    body = login(client, "clerk", "Clerk#123")
    token, refresh = body["accessToken"], body["refreshToken"]

    r = client.get("/api/auth/me", headers=auth(token))
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "clerk"
    assert r.json()["user"]["lastLogin"]

    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers=auth("not-a-jwt")).status_code == 401
    # refresh token 不能当 access token 用
    assert client.get("/api/auth/me", headers=auth(refresh)).status_code == 401

    r = client.post("/api/auth/logout", headers=auth(token), json={"refreshToken": refresh})
    assert r.status_code == 200
    with Session(engine) as db:
        assert db.query(RefreshToken).count() == 0
