from datetime import datetime, timedelta, timezone

import pytest
from werkzeug.security import generate_password_hash

from app.tracker import create_app
from app.tracker.constants import Role
from app.tracker.db import session_scope
from app.tracker.models import AuditEvent, Base, User
from app.tracker.modules.users import service as users_service
from app.tracker.security import issue_token


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("JWT_SECRET", "JWT_EXPIRES_SECONDS", "PROJECT_CREATE_ADMIN_ONLY", "LOGIN_RATE_LIMIT"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(
            User(
                name="Admin",
                email="admin@example.com",
                password_hash=generate_password_hash("pw-admin"),
                role=Role.ADMIN,
            )
        )

    return app.test_client()


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_health_ok(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_register_login_and_me(client):
    r = client.post("/api/auth/register", json={"name": "Dana", "email": "Dana@Example.com", "password": "secret1"})
    assert r.status_code == 201
    assert r.json["user"]["email"] == "dana@example.com"
    assert r.json["user"]["role"] == "Submitter"
    assert "password" not in r.json["user"] and "password_hash" not in r.json["user"]

    r = client.post("/api/auth/login", json={"email": "dana@example.com", "password": "secret1"})
    assert r.status_code == 200
    token = r.json["token"]

    r = client.get("/api/auth/user", headers=_auth(token))
    assert r.status_code == 200
    assert r.json["name"] == "Dana"
    assert set(r.json) == {"id", "name", "email", "role", "createdAt"}


def test_register_rejects_duplicates_and_bad_input(client):
    r = client.post("/api/auth/register", json={"name": "A", "email": "admin@example.com", "password": "secret1"})
    assert r.status_code == 400
    assert r.json["message"] == "User already exists"

    r = client.post("/api/auth/register", json={"name": "", "email": "nope", "password": "x"})
    assert r.status_code == 400

    r = client.post("/api/auth/register", data="[1, 2]", content_type="application/json")
    assert r.status_code == 400


def test_login_wrong_password_is_401_and_audited(client):
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong"})
    assert r.status_code == 401
    assert r.json["message"] == "Invalid credentials"
    assert r.json["requestId"]

    with session_scope(client.application) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert ev.entity_id == "admin@example.com"


def test_login_rate_limited(client):
    for _ in range(5):
        r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong"})
        assert r.status_code == 401
    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "pw-admin"})
    assert r.status_code == 429


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Bearer"},
        {"Authorization": "Token abc"},
        {"Authorization": "Bearer not-a-jwt"},
    ],
)
def test_missing_or_malformed_token_is_401(client, headers):
    r = client.get("/api/auth/user", headers=headers)
    assert r.status_code == 401


def test_expired_or_forged_token_is_401(client):
    expired = issue_token(1, secret="test-secret", expires_seconds=-60)
    assert client.get("/api/auth/user", headers=_auth(expired)).status_code == 401

    forged = issue_token(1, secret="someone-else", expires_seconds=600)
    assert client.get("/api/auth/user", headers=_auth(forged)).status_code == 401

    good = issue_token(1, secret="test-secret", expires_seconds=600)
    assert client.get("/api/auth/user", headers=_auth(good)).status_code == 200


def test_token_with_out_of_range_subject_is_401(client):
    token = issue_token(10**20, secret="test-secret", expires_seconds=600)
    r = client.get("/api/auth/user", headers=_auth(token))
    assert r.status_code == 401
    assert r.json["message"] == "Token is not valid"


def test_token_for_deleted_user_is_401(client):
    r = client.post("/api/auth/register", json={"name": "Eve", "email": "eve@example.com", "password": "secret1"})
    token = r.json["token"]

    r = client.delete("/api/auth/user", headers=_auth(token))
    assert r.status_code == 200

    r = client.get("/api/auth/user", headers=_auth(token))
    assert r.status_code == 401


def test_unknown_route_and_method_use_json_errors(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert "message" in r.json

    r = client.patch("/api/health")
    assert r.status_code == 405
    assert "message" in r.json


def test_login_attempt_log_forgets_idle_addresses(client):
    client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong"})
    attempts = client.application.extensions["login_attempts"]
    assert "127.0.0.1" in attempts

    attempts["10.0.0.9"] = [datetime.now(timezone.utc) - timedelta(days=1)]
    client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong"})
    assert "10.0.0.9" not in attempts
    assert len(attempts["127.0.0.1"]) == 2

    r = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "pw-admin"})
    assert r.status_code == 200
    assert "127.0.0.1" not in attempts


def test_concurrent_duplicate_registration_is_400(client, monkeypatch):
    # Simulate a second request that inserted the same email after the lookup.
    monkeypatch.setattr(users_service, "get_user_by_email", lambda s, email: None)

    r = client.post("/api/auth/register", json={"name": "A", "email": "admin@example.com", "password": "secret1"})
    assert r.status_code == 400
    assert r.json["message"] == "User already exists"

    with session_scope(client.application) as s:
        assert s.query(User).filter(User.email == "admin@example.com").count() == 1
