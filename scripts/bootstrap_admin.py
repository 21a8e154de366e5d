#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from pizza_service.core.config import BCRYPT_ROUNDS, DEV_BOOTSTRAP_ALLOW, IS_DEV  # noqa: E402
from pizza_service.core.database import SessionLocal, engine  # noqa: E402
from pizza_service.services.admin_bootstrap import (  # noqa: E402
    ensure_users_table,
    upsert_admin_user,
)
from pizza_service.services.passwords import PasswordHasher  # noqa: E402
from pizza_service.services.revocation import DatabaseRevocationRegistry  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote an admin account.")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", help="Admin password (required for a new account)")
    parser.add_argument("--name", default="Admin", help="Display name")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run without DEV_BOOTSTRAP_ALLOW=1",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if not DEV_BOOTSTRAP_ALLOW and not args.force:
        print("Admin bootstrap disabled. Set DEV_BOOTSTRAP_ALLOW=1 or pass --force.")
        return 1

    try:
        ensure_users_table(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        admin, created = upsert_admin_user(
            db,
            hasher=PasswordHasher(rounds=BCRYPT_ROUNDS),
            registry=DatabaseRevocationRegistry(),
            email=args.email,
            name=args.name,
            password=args.password,
        )
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Admin {action}: id={admin.id} email={admin.email}")
    if IS_DEV:
        password_info = args.password if args.password else "<unchanged>"
        print(f"DEV summary -> Email: {admin.email} | Password: {password_info}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
