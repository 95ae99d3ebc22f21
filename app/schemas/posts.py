from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime

class VerdictTag(str, Enum):
    PENDING = "Pending"
    VERIFIED = "Verified"
    MISLEADING = "Misleading"
    FALSE = "False"
    OUTDATED = "Outdated"
    UNVERIFIED = "Unverified"
    NOT_APPLICABLE = "Not Applicable"

class Verdict(BaseModel):
    """Moderation outcome attached to a post."""
    tag: VerdictTag = VerdictTag.PENDING
    summary: str = ""
    score: Optional[int] = None
    raw: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def pending(cls) -> "Verdict":
        return cls()

class ClientVerdict(BaseModel):
    """Verdict computed by the client (e.g. via the credibility-check endpoint) and sent along with the post."""
    fact_check_status: Optional[str] = None
    tag: Optional[VerdictTag] = None
    credibility_score: Optional[float] = None
    summary: str = ""

class ClassifierResult(BaseModel):
    fact_check_status: str
    credibility_score: Optional[float] = None
    summary: str = ""
    sources: List[str] = []

class PostCreate(BaseModel):
    content: str = Field("", max_length=2000)
    media_url: str = Field("", max_length=1024)
    ai: Optional[ClientVerdict] = None

class CreatedPost(BaseModel):
    id: str
    tag: VerdictTag
    media_url: Optional[str] = None

class CreatedPostResponse(BaseModel):
    id: str
    media_url: Optional[str] = None
    ai: Dict[str, str]

class VerdictResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tag: VerdictTag
    summary: str = ""
    score: Optional[int] = None
    updated_at: Optional[datetime] = None

class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    text: str
    created_at: datetime

class PostResponse(BaseModel):
    id: str
    author_id: str
    content: str
    media_url: str
    ai: VerdictResponse
    likes_count: int
    comments_count: int
    liked_by_me: bool = False
    comments: List[CommentResponse] = []
    created_at: Optional[datetime] = None

class PostListResponse(BaseModel):
    posts: List[PostResponse]

class CommentCreate(BaseModel):
    text: str = Field(..., max_length=1000)

class LikeResponse(BaseModel):
    liked: bool

class UnlikeResponse(BaseModel):
    unliked: bool

class DeletedResponse(BaseModel):
    deleted: bool

class CredibilityCheckRequest(BaseModel):
    check_for: str = Field(..., min_length=1, max_length=2000)

class UploadResponse(BaseModel):
    url: str
