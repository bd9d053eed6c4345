from monkmode.models.base import Base
from monkmode.models.friendship import Friendship, FriendshipStatus
from monkmode.models.user import User

__all__ = [
    "Base",
    "Friendship",
    "FriendshipStatus",
    "User",
]
