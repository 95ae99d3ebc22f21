from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from .users import PublicUser

class StoryCreate(BaseModel):
    text: Optional[str] = Field(None, max_length=300)
    media_url: Optional[str] = Field(None, max_length=1024)

class CreatedStoryResponse(BaseModel):
    id: str
    expires_at: datetime

class StoryItem(BaseModel):
    id: str
    text: str
    media_url: str
    media_type: str
    created_at: datetime
    expires_at: datetime
    views_count: int = 0

class StoryGroup(BaseModel):
    user: PublicUser
    latest_created_at: datetime
    items: List[StoryItem]

class StoryFeedResponse(BaseModel):
    users: List[StoryGroup]
