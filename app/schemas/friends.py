from pydantic import BaseModel, Field
from typing import List, Optional, Set
from enum import Enum as PyEnum

class FriendRequestStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"

class MarkDirection(str, PyEnum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"

class FriendRequestCreate(BaseModel):
    target_user_id: str = Field(..., max_length=64)

class FriendRequestAction(BaseModel):
    sender_user_id: str = Field(..., max_length=64)

class FriendRequestCancel(BaseModel):
    target_user_id: str = Field(..., max_length=64)

class PendingSets(BaseModel):
    incoming: Set[str] = Field(default_factory=set)
    outgoing: Set[str] = Field(default_factory=set)

class Relation(BaseModel):
    is_friend: bool = False
    incoming_pending: bool = False
    outgoing_pending: bool = False

class UserSearchResult(BaseModel):
    id: str
    name: str = ""
    email: str
    picture: Optional[str] = None
    description: str = ""
    is_friend: bool = False
    incoming_pending: bool = False
    outgoing_pending: bool = False

class UserSearchResponse(BaseModel):
    results: List[UserSearchResult]

class FriendIdsResponse(BaseModel):
    friends: List[str]

class PendingRequestsResponse(BaseModel):
    incoming: List[str]
    outgoing: List[str]
