# skillshare/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr  # Use EmailStr for basic email validation
    password: str = Field(..., min_length=1)
    skills_teach: List[str] = []
    skills_learn: List[str] = []


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    skills_teach: Optional[List[str]] = None
    skills_learn: Optional[List[str]] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: EmailStr
    skills_teach: List[str]
    skills_learn: List[str]
    rating: float
    total_ratings: int
    sessions_completed: int
    is_online: bool


class UserCard(BaseModel):
    """Public view of another user, as shown in the directory."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    skills_teach: List[str]
    skills_learn: List[str]
    rating: float
    sessions_completed: int
    is_online: bool


class Participant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    is_online: bool
    rating: float


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class ChatOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    participants: List[Participant]
    last_message: str
    is_completed: bool
    updated_at: datetime


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chat_id: int
    sender_id: int
    sender: str
    content: str
    created_at: datetime


class BulkDeleteRequest(BaseModel):
    message_ids: List[int]


class BulkDeleteResult(BaseModel):
    message: str
    deleted_count: int
    deleted_ids: List[int]


class FeedbackCreate(BaseModel):
    to_user_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    session_id: str = Field(..., min_length=1)
