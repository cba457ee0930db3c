"""Notification schemas"""
from datetime import datetime
from pydantic import BaseModel, Field


class NotificationView(BaseModel):
    """A notification as the recipient sees it"""
    id: str
    action_kind: str
    body: str
    actor_id: str
    actor_display_name: str
    actor_image_url: str | None = None
    link: str
    is_read: bool
    notified_at: datetime | None = None


class NotificationListResponse(BaseModel):
    items: list[NotificationView]
    total: int


class UnreadCountResponse(BaseModel):
    count: int = Field(..., ge=0)
