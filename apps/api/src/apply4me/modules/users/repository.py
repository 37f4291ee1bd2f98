"""
User Repository

Lookups used when addressing students (notifications, emails).
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from apply4me.modules.users.models import User


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        return await db.get(User, user_id)
