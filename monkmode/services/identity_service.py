import uuid
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from monkmode.models.user import User


async def get_user_id_by_username(db: AsyncSession, username: str) -> uuid.UUID | None:
    """Resolve a username (case-insensitive) to a user id."""
    username = username.strip()
    if not username:
        return None
    result = await db.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    )
    return result.scalar_one_or_none()


async def user_exists(db: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def get_username(db: AsyncSession, user_id: uuid.UUID) -> str | None:
    result = await db.execute(select(User.username).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_usernames(
    db: AsyncSession, user_ids: Iterable[uuid.UUID]
) -> dict[uuid.UUID, str]:
    """Batch lookup of usernames. Unknown ids are absent from the result."""
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(User.id, User.username).where(User.id.in_(ids))
    )
    return {row[0]: row[1] for row in result.all()}
