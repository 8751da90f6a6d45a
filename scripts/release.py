"""
Release step for the tracker: migrate, verify, seed.

Upgrades the database to the newest Alembic revision, then checks that it is
really at that revision and carries every table the models declare before
seeding the admin account. A deploy that leaves the schema behind fails here,
not on the first request.

Usage:
  python scripts/release.py [--skip-seed]
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from dotenv import load_dotenv
from sqlalchemy import inspect

from app.tracker.models import Base
from scripts import init_db
from scripts._db_utils import create_script_engine


def alembic_config(db_url: str) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def verify_schema(db_url: str) -> str:
    """Return the database's revision; raise unless it is the head and no tracker table is missing."""
    head = ScriptDirectory.from_config(alembic_config(db_url)).get_current_head()
    engine = create_script_engine(db_url)
    try:
        with engine.connect() as conn:
            current = MigrationContext.configure(conn).get_current_revision()
            tables = set(inspect(conn).get_table_names())
    finally:
        engine.dispose()

    if current != head:
        raise RuntimeError(f"Database is at revision {current or '(none)'}, expected {head}.")
    missing = sorted(set(Base.metadata.tables) - tables)
    if missing:
        raise RuntimeError(f"Tracker tables missing after migration: {', '.join(missing)}")
    return current


def run_release(db_url: str | None = None, *, seed: bool = True) -> str:
    db_url = (db_url or os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to release against sqlite in production. Set DATABASE_URL to Postgres.")

    command.upgrade(alembic_config(db_url), "head")
    revision = verify_schema(db_url)
    print(f"Tracker schema at revision {revision}.", flush=True)

    if seed:
        init_db.seed_admin(database_url=db_url)
    return revision


def main() -> None:
    parser = argparse.ArgumentParser(description="Migrate, verify and seed the tracker database.")
    parser.add_argument("--skip-seed", action="store_true", help="Do not create or promote the admin account")
    args = parser.parse_args()

    load_dotenv()
    run_release(seed=not args.skip_seed)


if __name__ == "__main__":
    main()
