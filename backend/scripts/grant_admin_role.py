#!/usr/bin/env python3
"""
Grant or revoke the admin role for an existing user.

Reads the database settings from backend/.env (or BACKEND_ENV_FILE).

Usage:
  python backend/scripts/grant_admin_role.py admin@example.com
  python backend/scripts/grant_admin_role.py admin@example.com --revoke
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import NoReturn

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parents[1]
ENV_FILE = Path(os.environ.get("BACKEND_ENV_FILE", BACKEND_DIR / ".env"))


def die(message: str) -> NoReturn:
    print(f"ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("email", help="Email of the user to update")
    parser.add_argument("--revoke", action="store_true", help="Remove the admin role instead of granting it")
    return parser.parse_args(argv)


async def run(email: str, *, revoke: bool) -> str:
    # Settings are read at import time, so the env file must be loaded first.
    from cte_skills.db import pool
    from cte_skills.repositories import roles as roles_repo
    from cte_skills.repositories import users as users_repo

    await pool.open(wait=True)
    try:
        user = await users_repo.get_credentials_by_email(email)
        if not user:
            die(f"No user with email {email}")
        if revoke:
            await roles_repo.revoke_role(user["id"], roles_repo.ADMIN_ROLE)
        else:
            await roles_repo.grant_role(user["id"], roles_repo.ADMIN_ROLE)
        return user["id"]
    finally:
        await pool.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if ENV_FILE.exists():
        load_dotenv(ENV_FILE)
    if not (os.environ.get("DATABASE_URL") or os.environ.get("SUPABASE_DB_URL")):
        die("DATABASE_URL or SUPABASE_DB_URL must be set")
    sys.path.insert(0, str(BACKEND_DIR))

    user_id = asyncio.run(run(args.email, revoke=args.revoke))
    action = "revoked from" if args.revoke else "granted to"
    print(f"admin role {action} {args.email} ({user_id})")


if __name__ == "__main__":
    main()
