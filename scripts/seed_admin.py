"""
Seed Admin User

Creates the initial admin account for the School Portal.
Run this script once to set up the admin account.

Credentials come from the environment:
    SEED_ADMIN_EMAIL, SEED_ADMIN_PASSWORD, SEED_ADMIN_FIRST_NAME, SEED_ADMIN_LAST_NAME

Usage:
    pip install -e .
    SEED_ADMIN_EMAIL=... SEED_ADMIN_PASSWORD=... python scripts/seed_admin.py
"""

import asyncio
import os
import sys

from app.core.database import async_session_maker, engine, init_db
from app.core.security import hash_password
from app.modules.auth.errors import DuplicateEmailError
from app.modules.auth.schemas import check_password_policy
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository


async def seed_admin() -> int:
    """Create the admin user if it doesn't exist."""
    email = os.environ.get("SEED_ADMIN_EMAIL")
    password = os.environ.get("SEED_ADMIN_PASSWORD")
    first_name = os.environ.get("SEED_ADMIN_FIRST_NAME", "Portal")
    last_name = os.environ.get("SEED_ADMIN_LAST_NAME", "Admin")

    if not email or not password:
        print("SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD must be set")
        return 1

    problems = check_password_policy(password)
    if problems:
        print("Admin password rejected:")
        for problem in problems:
            print(f"  - {problem}")
        return 1

    await init_db()

    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, email)
        if existing_user:
            print(f"Admin already exists: {existing_user.email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Role: {existing_user.role.value}")
            return 0

        try:
            admin_user = await UserRepository.create(
                db,
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN,
                is_active=True,
                is_verified=True,  # Pre-verified
            )
        except DuplicateEmailError:
            print(f"Admin already exists: {email}")
            return 0

        print("Admin created successfully!")
        print(f"  Email: {admin_user.email}")
        print(f"  Name: {admin_user.full_name}")
        print(f"  ID: {admin_user.id}")

    await engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_admin()))
