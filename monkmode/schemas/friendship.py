import uuid
from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class FriendRequest(BaseModel):
    friend_username: str | None = Field(default=None, max_length=64)
    friend_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def exactly_one_target(self) -> "FriendRequest":
        has_username = bool(self.friend_username and self.friend_username.strip())
        has_id = self.friend_id is not None
        if has_username == has_id:
            raise ValueError("Please provide either a username or an ID, not both.")
        return self


class FriendshipResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID  # requester
    friend_id: uuid.UUID  # recipient
    friend_username: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class StatusMessage(BaseModel):
    status: str
    message: str
