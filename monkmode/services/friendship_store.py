"""Durable storage of friendship records.

Every mutation here is a single conditional statement, so the database
serializes concurrent transitions on the same record or pair: the pair
uniqueness constraint guards inserts, and updates/deletes only match rows
still in the expected state.
"""
import uuid

from sqlalchemy import delete as sa_delete
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from monkmode.models.friendship import Friendship, FriendshipStatus
from monkmode.services.friendship_errors import FriendshipConflict


def normalize_pair(
    user_a: uuid.UUID, user_b: uuid.UUID
) -> tuple[uuid.UUID, uuid.UUID]:
    """Return the pair in canonical (low, high) order."""
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


async def get_by_id(db: AsyncSession, friendship_id: uuid.UUID) -> Friendship | None:
    result = await db.execute(
        select(Friendship)
        .where(Friendship.id == friendship_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_pair(
    db: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID
) -> Friendship | None:
    """Find the live record between two users, in either direction."""
    low, high = normalize_pair(user_a, user_b)
    result = await db.execute(
        select(Friendship)
        .where(
            Friendship.user_low_id == low,
            Friendship.user_high_id == high,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def insert(
    db: AsyncSession, requester_id: uuid.UUID, recipient_id: uuid.UUID
) -> Friendship:
    """Create a pending request.

    Raises FriendshipConflict when a live record for the pair already exists;
    the failed unit of work is rolled back first.
    """
    low, high = normalize_pair(requester_id, recipient_id)
    friendship = Friendship(
        requester_id=requester_id,
        recipient_id=recipient_id,
        user_low_id=low,
        user_high_id=high,
        status=FriendshipStatus.PENDING.value,
    )
    db.add(friendship)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise FriendshipConflict() from exc
    return friendship


async def update_status(
    db: AsyncSession,
    friendship_id: uuid.UUID,
    expected: FriendshipStatus,
    new: FriendshipStatus,
) -> Friendship | None:
    """Move a record from ``expected`` to ``new``.

    Returns the updated record, or None if no record was in ``expected``.
    """
    result = await db.execute(
        update(Friendship)
        .where(
            Friendship.id == friendship_id,
            Friendship.status == expected.value,
        )
        .values(status=new.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return await get_by_id(db, friendship_id)


async def delete(
    db: AsyncSession,
    friendship_id: uuid.UUID,
    expected: FriendshipStatus,
    participant_id: uuid.UUID | None = None,
) -> bool:
    """Delete a record in state ``expected``, optionally only if
    ``participant_id`` is one of its two users. Returns whether a row went."""
    stmt = sa_delete(Friendship).where(
        Friendship.id == friendship_id,
        Friendship.status == expected.value,
    )
    if participant_id is not None:
        stmt = stmt.where(
            or_(
                Friendship.requester_id == participant_id,
                Friendship.recipient_id == participant_id,
            )
        )
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


async def list_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    status: FriendshipStatus,
    role: str | None = None,
) -> list[Friendship]:
    """List records in ``status`` that involve ``user_id``.

    ``role`` narrows by direction: "requester" for sent requests,
    "recipient" for received ones, None for either side.
    """
    if role == "requester":
        participant = Friendship.requester_id == user_id
    elif role == "recipient":
        participant = Friendship.recipient_id == user_id
    elif role is None:
        participant = or_(
            Friendship.requester_id == user_id,
            Friendship.recipient_id == user_id,
        )
    else:
        raise ValueError(f"Unknown role: {role}")

    result = await db.execute(
        select(Friendship)
        .where(participant, Friendship.status == status.value)
        .order_by(Friendship.created_at.desc())
    )
    return list(result.scalars().all())
