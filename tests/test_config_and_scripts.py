import pytest
from sqlalchemy import create_engine, inspect

from app.tracker import create_app
from app.tracker.config import load_settings
from app.tracker.constants import Role
from app.tracker.models import User
from app.tracker.security import verify_password
from scripts import init_db, release
from scripts._db_utils import script_session


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in (
        "SECRET_KEY",
        "ENV",
        "DATABASE_URL",
        "JWT_SECRET",
        "JWT_EXPIRES_SECONDS",
        "PROJECT_CREATE_ADMIN_ONLY",
        "LOGIN_RATE_LIMIT",
        "LOGIN_RATE_WINDOW_SECONDS",
        "ADMIN_EMAIL",
        "ADMIN_PASSWORD",
        "ADMIN_NAME",
    ):
        monkeypatch.delenv(k, raising=False)


def test_settings_defaults():
    s = load_settings()
    assert s.database_url == "sqlite:///tracker.db"
    assert s.jwt_secret == s.secret_key
    assert s.jwt_expires_seconds == 3600
    assert s.project_create_admin_only is True
    assert s.login_rate_limit == 5


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "k1")
    monkeypatch.setenv("JWT_SECRET", "k2")
    monkeypatch.setenv("JWT_EXPIRES_SECONDS", "60")
    monkeypatch.setenv("PROJECT_CREATE_ADMIN_ONLY", "no")
    s = load_settings()
    assert (s.secret_key, s.jwt_secret, s.jwt_expires_seconds) == ("k1", "k2", 60)
    assert s.project_create_admin_only is False


def test_bad_integer_setting_fails_fast(monkeypatch):
    monkeypatch.setenv("LOGIN_RATE_LIMIT", "lots")
    with pytest.raises(RuntimeError):
        load_settings()


def test_production_refuses_sqlite_and_default_secrets(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("SECRET_KEY", "strong")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()

    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/tracker")
    monkeypatch.setenv("SECRET_KEY", "change-me")
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_app()


def test_seed_admin_is_idempotent(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("ADMIN_EMAIL", "Boss@Example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "first-pass")
    init_db.create_tables(db_url)
    init_db.seed_admin(database_url=db_url)

    # A second run must not overwrite the password.
    monkeypatch.setenv("ADMIN_PASSWORD", "second-pass")
    init_db.seed_admin(database_url=db_url)

    with script_session(db_url) as s:
        users = s.query(User).all()
        assert len(users) == 1
        assert users[0].email == "boss@example.com"
        assert users[0].role is Role.ADMIN
        assert verify_password(users[0].password_hash, "first-pass")


def test_release_migrates_verifies_and_seeds(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("ADMIN_EMAIL", "ops@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "ops-pass")

    revision = release.run_release(db_url)
    assert revision == "3f1a2b4c5d6e"

    engine = create_engine(db_url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"users", "projects", "project_members", "tickets", "comments", "audit_events"} <= tables

    with script_session(db_url) as s:
        admin = s.query(User).filter(User.email == "ops@example.com").one()
        assert admin.role is Role.ADMIN

    # Re-running against an up-to-date database is harmless.
    assert release.run_release(db_url) == revision


def test_verify_schema_rejects_database_without_revision(tmp_path):
    db_url = f"sqlite:///{tmp_path/'unstamped.db'}"
    init_db.create_tables(db_url)
    with pytest.raises(RuntimeError, match="revision"):
        release.verify_schema(db_url)


def test_release_refuses_sqlite_in_production(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        release.run_release(f"sqlite:///{tmp_path/'prod.db'}")
