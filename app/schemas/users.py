from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from enum import Enum
from datetime import datetime

from .friends import Relation

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: UserRole

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    picture: Optional[str] = Field(None, max_length=1024)
    description: Optional[str] = Field(None, max_length=500)
    phone: Optional[str] = Field(None, max_length=32)

class PublicUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = ""
    email: str
    picture_url: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

class MeUserResponse(PublicUser):
    role: UserRole
    phone: Optional[str] = None
    updated_at: Optional[datetime] = None

class UserWithRelation(BaseModel):
    user: PublicUser
    relation: Relation

class IncomingRequest(BaseModel):
    id: str
    from_user: PublicUser
    created_at: Optional[datetime] = None

class IncomingRequestsResponse(BaseModel):
    requests: List[IncomingRequest]
