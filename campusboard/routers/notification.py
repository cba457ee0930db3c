"""Notification API routes"""
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.notification import NotificationListResponse, NotificationView, UnreadCountResponse
from ..services.notification_service import notification_service
from ..utils.deps import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 10,
    is_read: Annotated[Literal["all", "read", "unread"], Query()] = "all",
):
    """Newest activity first"""
    total, items = await notification_service.list_for_recipient(
        db, current_user.id, is_read=is_read, offset=(page - 1) * page_size, limit=page_size
    )
    return NotificationListResponse(items=items, total=total)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return UnreadCountResponse(count=await notification_service.count_unread(db, current_user.id))


@router.get("/{notification_id}", response_model=NotificationView)
async def get_notification(
    notification_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await notification_service.get_view(db, notification_id, current_user.id)


@router.put("/read-all")
async def mark_all_as_read(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await notification_service.read_all(db, current_user.id)
    return {"message": "All notifications marked as read"}


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await notification_service.read(db, notification_id, current_user.id)
    return {"message": "Marked as read"}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await notification_service.delete(db, notification_id, current_user.id)
    return {"message": "Deleted"}
