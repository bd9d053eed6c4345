import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from monkmode.models.friendship import Friendship, FriendshipStatus
from monkmode.services import friendship_engine, friendship_store, identity_service
from monkmode.services.notification_service import (
    notify_friend_request,
    notify_request_accepted,
    notify_request_rejected,
)

logger = logging.getLogger(__name__)

UNKNOWN_USERNAME = "Unknown"


def _counterpart(friendship: Friendship, user_id: uuid.UUID) -> uuid.UUID:
    if friendship.requester_id == user_id:
        return friendship.recipient_id
    return friendship.requester_id


def _project(friendship: Friendship, friend_username: str) -> dict:
    return {
        "id": friendship.id,
        "user_id": friendship.requester_id,
        "friend_id": friendship.recipient_id,
        "friend_username": friend_username,
        "status": friendship.status,
        "created_at": friendship.created_at,
    }


async def _project_many(
    db: AsyncSession, user_id: uuid.UUID, friendships: list[Friendship]
) -> list[dict]:
    """Attach the counterparty's username; skip records whose user is gone."""
    usernames = await identity_service.get_usernames(
        db, (_counterpart(f, user_id) for f in friendships)
    )

    results = []
    for f in friendships:
        other_id = _counterpart(f, user_id)
        username = usernames.get(other_id)
        if username is None:
            logger.warning(
                "Skipping friendship %s: user %s could not be resolved", f.id, other_id
            )
            continue
        results.append(_project(f, username))
    return results


async def list_friends(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Accepted friendships of ``user_id``, in either direction."""
    friendships = await friendship_store.list_for_user(
        db, user_id, FriendshipStatus.ACCEPTED
    )
    return await _project_many(db, user_id, friendships)


async def list_incoming(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Pending requests received by ``user_id``."""
    friendships = await friendship_store.list_for_user(
        db, user_id, FriendshipStatus.PENDING, role="recipient"
    )
    return await _project_many(db, user_id, friendships)


async def list_outgoing(db: AsyncSession, user_id: uuid.UUID) -> list[dict]:
    """Pending requests sent by ``user_id``."""
    friendships = await friendship_store.list_for_user(
        db, user_id, FriendshipStatus.PENDING, role="requester"
    )
    return await _project_many(db, user_id, friendships)


async def send_friend_request(
    db: AsyncSession,
    user_id: uuid.UUID,
    friend_username: str | None = None,
    friend_id: uuid.UUID | None = None,
    notifier=None,
) -> dict:
    """Send a friend request by username (or id) and notify the target."""
    target_id = friend_id
    if friend_username is not None:
        target_id = await identity_service.get_user_id_by_username(db, friend_username)

    friendship = await friendship_engine.request(db, user_id, target_id)
    await db.commit()

    usernames = await identity_service.get_usernames(db, [user_id, target_id])
    notify_friend_request(
        notifier,
        requester_id=user_id,
        requester_username=usernames.get(user_id, UNKNOWN_USERNAME),
        recipient_id=target_id,
    )
    return _project(friendship, usernames.get(target_id, UNKNOWN_USERNAME))


async def accept_friend_request(
    db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID, notifier=None
) -> dict:
    """Accept a request addressed to ``user_id`` and notify the requester."""
    friendship = await friendship_engine.accept(db, user_id, friendship_id)
    await db.commit()

    notify_request_accepted(
        notifier,
        friendship_id=friendship.id,
        accepted_by=user_id,
        requester_id=friendship.requester_id,
    )
    requester_username = await identity_service.get_username(db, friendship.requester_id)
    return _project(friendship, requester_username or UNKNOWN_USERNAME)


async def reject_friend_request(
    db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID, notifier=None
) -> dict:
    """Reject a request addressed to ``user_id``; returns the deleted request."""
    snapshot = await friendship_engine.reject(db, user_id, friendship_id)
    await db.commit()

    notify_request_rejected(
        notifier,
        friendship_id=snapshot.id,
        rejected_by=user_id,
        requester_id=snapshot.requester_id,
    )
    requester_username = await identity_service.get_username(db, snapshot.requester_id)
    return _project(snapshot, requester_username or UNKNOWN_USERNAME)


async def remove_friend(
    db: AsyncSession, user_id: uuid.UUID, friendship_id: uuid.UUID
) -> bool:
    removed = await friendship_engine.remove(db, user_id, friendship_id)
    if removed:
        await db.commit()
    return removed
