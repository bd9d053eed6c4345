"""Friendship state machine.

    (none) --request--> pending --accept--> accepted --remove--> (none)
                           |
                           +-----reject-----> (none)

Rejected and removed friendships are deleted, so a pair can go through
several friendships over time. At most one live record exists per pair,
whichever direction it was requested in.
"""
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from monkmode.models.friendship import Friendship, FriendshipStatus
from monkmode.services import friendship_store, identity_service
from monkmode.services.friendship_errors import (
    AlreadyAccepted,
    FriendshipConflict,
    FriendshipForbidden,
    FriendshipNotFound,
    NotPending,
    RequestAlreadyExists,
    SelfTarget,
    TargetNotFound,
)

logger = logging.getLogger(__name__)


def _raise_for_existing(existing: Friendship) -> None:
    if existing.status == FriendshipStatus.ACCEPTED.value:
        raise AlreadyAccepted()
    raise RequestAlreadyExists()


async def request(
    db: AsyncSession, actor_id: uuid.UUID, target_id: uuid.UUID | None
) -> Friendship:
    """Create a pending request from ``actor_id`` to ``target_id``.

    A pending request in the opposite direction is a conflict, not an
    implicit accept.
    """
    if actor_id == target_id:
        raise SelfTarget()

    if target_id is None or not await identity_service.user_exists(db, target_id):
        raise TargetNotFound()

    existing = await friendship_store.get_by_pair(db, actor_id, target_id)
    if existing is not None:
        _raise_for_existing(existing)

    try:
        friendship = await friendship_store.insert(db, actor_id, target_id)
    except FriendshipConflict:
        # Lost the race to a concurrent request for the same pair
        existing = await friendship_store.get_by_pair(db, actor_id, target_id)
        if existing is None:
            raise
        _raise_for_existing(existing)

    logger.info(
        "Friend request %s created: %s -> %s", friendship.id, actor_id, target_id
    )
    return friendship


async def _load_pending_for_recipient(
    db: AsyncSession, actor_id: uuid.UUID, friendship_id: uuid.UUID
) -> Friendship:
    friendship = await friendship_store.get_by_id(db, friendship_id)
    if friendship is None:
        raise FriendshipNotFound()

    # Only the non-initiating side may answer a request
    if friendship.recipient_id != actor_id:
        raise FriendshipForbidden()

    if friendship.status != FriendshipStatus.PENDING.value:
        raise NotPending()
    return friendship


async def _raise_lost_transition(db: AsyncSession, friendship_id: uuid.UUID) -> None:
    if await friendship_store.get_by_id(db, friendship_id) is None:
        raise FriendshipNotFound()
    raise NotPending()


async def accept(
    db: AsyncSession, actor_id: uuid.UUID, friendship_id: uuid.UUID
) -> Friendship:
    """Accept a pending request addressed to ``actor_id``."""
    await _load_pending_for_recipient(db, actor_id, friendship_id)

    updated = await friendship_store.update_status(
        db, friendship_id, FriendshipStatus.PENDING, FriendshipStatus.ACCEPTED
    )
    if updated is None:
        await _raise_lost_transition(db, friendship_id)

    logger.info("Friend request %s accepted by %s", friendship_id, actor_id)
    return updated


async def reject(
    db: AsyncSession, actor_id: uuid.UUID, friendship_id: uuid.UUID
) -> Friendship:
    """Reject (delete) a pending request addressed to ``actor_id``.

    Returns a detached snapshot of the deleted record.
    """
    friendship = await _load_pending_for_recipient(db, actor_id, friendship_id)

    deleted = await friendship_store.delete(
        db, friendship_id, FriendshipStatus.PENDING
    )
    if not deleted:
        await _raise_lost_transition(db, friendship_id)

    db.expunge(friendship)
    logger.info("Friend request %s rejected by %s", friendship_id, actor_id)
    return friendship


async def remove(
    db: AsyncSession, actor_id: uuid.UUID, friendship_id: uuid.UUID
) -> bool:
    """Remove an accepted friendship that ``actor_id`` is part of.

    Returns False, without raising, when there is nothing the actor may
    remove: unknown id, not a participant, or not yet accepted.
    """
    removed = await friendship_store.delete(
        db, friendship_id, FriendshipStatus.ACCEPTED, participant_id=actor_id
    )
    if removed:
        logger.info("Friendship %s removed by %s", friendship_id, actor_id)
    return removed
