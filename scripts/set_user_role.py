#!/usr/bin/env python3
"""Set a user's role by email (idempotent).

Usage:
  python scripts/set_user_role.py --email dev@example.com --role Admin
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.tracker.constants import Role
from app.tracker.models import User
from scripts._db_utils import script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", required=True, choices=[r.value for r in Role])
    args = parser.parse_args()

    role = Role(args.role)
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///tracker.db").strip()
    with script_session(db_url) as s:
        user = s.query(User).filter(User.email == args.email.strip().lower()).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            return
        if user.role is role:
            print(f"User already has role {role.value}: {args.email}")
            return
        user.role = role
    print(f"Role {role.value} set for {args.email}")


if __name__ == "__main__":
    main()
