"""User schemas"""
from datetime import datetime
from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=200)
    user_type: str = "std"
    full_name: str | None = None
    student_id: str | None = None
    image_ref: str | None = None


class UserProfileUpdate(BaseModel):
    display_name: str | None = Field(None, min_length=1, max_length=100)
    full_name: str | None = None
    student_id: str | None = None
    image_ref: str | None = None


class UserResponse(BaseModel):
    id: str
    user_type: str
    display_name: str
    full_name: str | None = None
    email: str
    student_id: str | None = None
    image_ref: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class FollowRequest(BaseModel):
    is_follow: bool


class SubscribeRequest(BaseModel):
    is_subscribe: bool
