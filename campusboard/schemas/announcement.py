"""Announcement schemas"""
from datetime import datetime
from pydantic import BaseModel, Field


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    image_refs: list[str] = Field(default_factory=list)


class AnnouncementResponse(BaseModel):
    id: str
    title: str
    description: str
    author_id: str
    image_refs: list[str] = []
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
