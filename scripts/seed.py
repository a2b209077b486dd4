"""Seed script to create demo accounts and print their bearer tokens."""

import asyncio
import sys

sys.path.insert(0, ".")

from sqlalchemy import select

from app.db import async_session_maker, init_db
from app.models import User, UserRole
from app.security import create_access_token


async def seed_database():
    """Seed the database with sample accounts."""
    await init_db()

    async with async_session_maker() as session:
        # Check if already seeded
        existing = await session.execute(select(User).limit(1))
        if existing.scalar_one_or_none():
            print("Database already seeded. Skipping.")
            return

        print("Seeding database...")

        admin = User(email="admin@example.com", name="Ana Admin", role=UserRole.ADMIN)
        courier = User(email="carlos@example.com", name="Carlos Repartidor", role=UserRole.REPARTIDOR)
        session.add_all([admin, courier])
        await session.commit()

        print("\n✅ Database seeded successfully!")
        print("\nDemo accounts (bearer tokens valid for 24h):")
        for user in (admin, courier):
            token = create_access_token(user.id, user.email, user.role)
            print(f"  {user.email} ({user.role}) id={user.id}")
            print(f"    Authorization: Bearer {token}")


if __name__ == "__main__":
    asyncio.run(seed_database())
