#!/usr/bin/env python3
"""Create a login for the report calendar.

Existing accounts are left untouched unless ``--update`` is given, in which
case the name, role and password are overwritten.

Usage:
    python3 scripts/create_user.py admin@example.com --name "管理者" --admin
    python3 scripts/create_user.py staff@example.com --password secret123
    python3 scripts/create_user.py staff@example.com --password newpass99 --update
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.database import AsyncSessionLocal, Base, engine
from app.models.user import User
from app.utils.password import hash_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


async def create_user(email: str, password: str, name: str, role: str, update: bool = False) -> User:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is not None and not update:
            logger.info("User %s already exists (id=%s, role=%s); nothing changed", email, user.id, user.role)
            return user

        if user is None:
            user = User(email=email)
            session.add(user)
            action = "Created"
        else:
            action = "Updated"

        user.name = name
        user.role = role
        user.hashed_password = hash_password(password)
        user.is_active = True

        await session.commit()
        await session.refresh(user)
        logger.info("%s user %s (id=%s, role=%s)", action, email, user.id, user.role)
        return user


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or update a report calendar user")
    parser.add_argument("email")
    parser.add_argument("--name", default=None, help="Display name (defaults to the email's local part)")
    parser.add_argument("--password", default=None, help="Prompted for when omitted")
    parser.add_argument("--admin", action="store_true", help="Grant the admin role")
    parser.add_argument("--update", action="store_true", help="Overwrite an existing account")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    password = args.password or getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        logger.error("Password must be at least %d characters", MIN_PASSWORD_LENGTH)
        return 1

    name = args.name or args.email.split("@", 1)[0]
    role = "admin" if args.admin else "staff"

    async def run():
        try:
            await create_user(args.email, password, name, role, update=args.update)
        finally:
            await engine.dispose()

    asyncio.run(run())
    return 0


if __name__ == "__main__":
    sys.exit(main())
