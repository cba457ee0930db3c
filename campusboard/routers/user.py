"""User and social graph API routes"""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.announcement import AnnouncementResponse
from ..schemas.forum import ToggleResponse
from ..schemas.user import FollowRequest, SubscribeRequest, UserProfileUpdate, UserResponse
from ..services.announcement_service import announcement_service
from ..services.user_service import user_service
from ..utils.deps import get_current_user

router = APIRouter(prefix="/user", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user


@router.put("/me", response_model=UserResponse)
async def update_me(
    data: UserProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await user_service.update_profile(db, current_user, data)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await user_service.get_user(db, user_id)


@router.post("/{user_id}/follow", response_model=ToggleResponse)
async def follow_user(
    user_id: str,
    data: FollowRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    active, count = await user_service.follow(db, current_user, user_id, data.is_follow)
    return ToggleResponse(active=active, count=count)


@router.post("/{user_id}/subscribe")
async def subscribe_user(
    user_id: str,
    data: SubscribeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a notification whenever this user posts a forum"""
    on = await user_service.subscribe(db, current_user, user_id, data.is_subscribe)
    return {"subscribed": on}


@router.get("/announcements/{announcement_id}", response_model=AnnouncementResponse)
async def get_announcement(
    announcement_id: str,
    _: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await announcement_service.get_announcement(db, announcement_id)


@router.post("/announcements/{announcement_id}/seen")
async def see_announcement(
    announcement_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    seen_count = await announcement_service.see_announcement(db, announcement_id, current_user)
    return {"seen_count": seen_count}
