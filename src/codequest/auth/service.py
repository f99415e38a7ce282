"""User lookups for authenticated requests."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.db.models import User


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Get a user by primary key."""
    return await db.get(User, user_id)


async def get_or_create_user(db: AsyncSession, email: str, name: str | None = None) -> tuple[User, bool]:
    """Get a user by email, creating the row if needed. Returns (user, created)."""
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is not None:
        return user, False
    user = User(email=email, name=name)
    db.add(user)
    await db.flush()
    return user, True
