import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from app.tracker.constants import Role
from app.tracker.models import Base, User
from app.tracker.security import hash_password
from scripts._db_utils import create_script_engine, script_session


def create_tables(database_url: str) -> None:
    """Create any missing tables straight from the models (dev/test databases)."""
    engine = create_script_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_admin(*, database_url: str | None = None) -> None:
    """
    Seed the admin account in an idempotent way.
    Does NOT overwrite an existing admin user's password; does promote it to Admin.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@tracker.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_name = (os.environ.get("ADMIN_NAME") or "Administrator").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///tracker.db").strip()

    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                name=admin_name,
                email=admin_email,
                password_hash=hash_password(admin_password),
                role=Role.ADMIN,
            )
            s.add(user)
        elif user.role is not Role.ADMIN:
            user.role = Role.ADMIN

    print("Admin account ready.")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    load_dotenv()
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///tracker.db").strip()
    if "--create-tables" in sys.argv[1:]:
        create_tables(db_url)
    seed_admin(database_url=db_url)


if __name__ == "__main__":
    main()
