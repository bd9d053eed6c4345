import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from monkmode.database import get_db
from monkmode.dependencies import get_current_user
from monkmode.models.user import User
from monkmode.schemas.friendship import FriendRequest, FriendshipResponse, StatusMessage
from monkmode.services import friendship_service

router = APIRouter(prefix="/api/friendship", tags=["friendship"])


@router.get("", response_model=list[FriendshipResponse])
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.list_friends(db, user.id)


@router.get("/requests", response_model=list[FriendshipResponse])
async def list_friend_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.list_incoming(db, user.id)


@router.get("/sent", response_model=list[FriendshipResponse])
async def list_sent_friend_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.list_outgoing(db, user.id)


@router.post("/send", response_model=FriendshipResponse)
async def send_friend_request(
    data: FriendRequest,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.send_friend_request(
        db,
        user.id,
        friend_username=data.friend_username if data.friend_id is None else None,
        friend_id=data.friend_id,
        notifier=req.app.state.notifier,
    )


@router.post("/accept/{friendship_id}", response_model=FriendshipResponse)
async def accept_friend_request(
    friendship_id: uuid.UUID,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.accept_friend_request(
        db, user.id, friendship_id, notifier=req.app.state.notifier
    )


@router.post("/reject/{friendship_id}", response_model=FriendshipResponse)
async def reject_friend_request(
    friendship_id: uuid.UUID,
    req: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await friendship_service.reject_friend_request(
        db, user.id, friendship_id, notifier=req.app.state.notifier
    )


@router.delete(
    "/{friendship_id}",
    response_model=StatusMessage,
    responses={400: {"model": StatusMessage}},
)
async def remove_friend(
    friendship_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    removed = await friendship_service.remove_friend(db, user.id, friendship_id)
    if not removed:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"status": "Error", "message": "Friend could not be removed."},
        )
    return {"status": "Success", "message": "Friend removed successfully."}
