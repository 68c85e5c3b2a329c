from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional
from enum import Enum


class FriendshipFailure(str, Enum):
    SELF_REFERENCE = "self_reference"
    ALREADY_CONNECTED = "already_connected"
    NO_SUCH_RELATIONSHIP = "no_such_relationship"
    NOT_RECIPIENT = "not_recipient"
    BLOCK_NOT_PERMITTED = "block_not_permitted"
    UNBLOCK_NOT_PERMITTED = "unblock_not_permitted"


class FriendshipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    requester_id: int
    recipient_id: int
    pending: bool
    blocker_id: Optional[int] = None
    platform: Optional[str] = None
    mutual_friends_count: int = 0
    friend_registered: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_blocked(self) -> bool:
        return self.blocker_id is not None


class FriendshipResult(BaseModel):
    """Outcome of a state transition: the record on success, the failure kind otherwise"""
    ok: bool
    relationship: Optional[FriendshipRead] = None
    failure: Optional[FriendshipFailure] = None

    @classmethod
    def success(cls, friendship) -> "FriendshipResult":
        return cls(ok=True, relationship=FriendshipRead.model_validate(friendship))

    @classmethod
    def rejected(cls, failure: FriendshipFailure) -> "FriendshipResult":
        return cls(ok=False, failure=failure)

    def __bool__(self) -> bool:
        return self.ok
