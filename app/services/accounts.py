"""
Account lookup against the users table.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class AccountDirectory:
    """Resolves account ids to users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, account_id: str) -> User | None:
        user = await self.db.get(User, account_id)
        if user is None or not user.is_active:
            return None
        return user
