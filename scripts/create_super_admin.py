#!/usr/bin/env python3
"""Create the first super-admin principal.

Super-admins belong to no tenant, so they cannot self-register. Run once per
deployment (idempotent: an existing account with the same email is left alone):

    python scripts/create_super_admin.py --email root@example.com --password '...'
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys

from sqlalchemy import select

from grcnexus.config import get_settings
from grcnexus.database import Database
from grcnexus.logging_config import setup_logging
from grcnexus.models.user import User, UserStatus
from grcnexus.security.credentials import PasswordHash
from grcnexus.security.permissions import Role
from grcnexus.services.accounts import normalize_email

MIN_PASSWORD_LENGTH = 8


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a GRC Nexus super-admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="prompted for when omitted")
    parser.add_argument("--first-name", default="Super")
    parser.add_argument("--last-name", default="Admin")
    return parser.parse_args(argv)


async def create_super_admin(db: Database, email: str, password: str, first_name: str, last_name: str) -> dict:
    await db.init_models()
    async with db.session() as session:
        existing = await session.execute(select(User).where(User.email == email))
        user = existing.scalar_one_or_none()
        if user is not None:
            return {"created": False, "id": user.id, "email": user.email}

        user = User(
            tenant_id=None,
            email=email,
            password=PasswordHash.write(password, rounds=db.settings.bcrypt_rounds),
            first_name=first_name,
            last_name=last_name,
            role=Role.SUPER_ADMIN.value,
            status=UserStatus.ACTIVE.value,
            is_super_admin=True,
        )
        session.add(user)
        await session.commit()
        return {"created": True, "id": user.id, "email": user.email}


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    password = args.password or getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(json.dumps({"ok": False, "error": f"password must be at least {MIN_PASSWORD_LENGTH} characters"}))
        return 1

    db = Database(settings)
    try:
        result = await create_super_admin(db, normalize_email(args.email), password, args.first_name, args.last_name)
    finally:
        await db.dispose()

    print(json.dumps({"ok": True, **result}))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
