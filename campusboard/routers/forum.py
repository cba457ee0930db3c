"""Forum and comment API routes"""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.user import User
from ..schemas.admin import CascadeResponse, CategoryResponse
from ..schemas.forum import (
    CommentCreate,
    CommentListResponse,
    CommentResponse,
    CommentUpdate,
    FavoriteRequest,
    ForumCreate,
    ForumResponse,
    ForumUpdate,
    LikeRequest,
    ToggleResponse,
)
from ..services.comment_service import comment_service
from ..services.forum_service import forum_service
from ..services.moderation_service import moderation_service
from ..utils.deps import get_current_user, get_session_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forum", tags=["Forum"])


# ============ Forums ============

@router.post("/forums", response_model=ForumResponse, summary="Create a forum")
async def create_forum(
    data: ForumCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    forum = await forum_service.create_forum(db, current_user, data)
    return await forum_service.to_response(db, forum)


@router.get("/forums/{forum_id}", response_model=ForumResponse, summary="Forum detail")
async def get_forum(
    forum_id: str,
    _: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    forum = await forum_service.get_forum(db, forum_id)
    return await forum_service.to_response(db, forum)


@router.put("/forums/{forum_id}", response_model=ForumResponse, summary="Edit a forum")
async def update_forum(
    forum_id: str,
    data: ForumUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    forum = await forum_service.update_forum(db, forum_id, current_user, data, session_id)
    return await forum_service.to_response(db, forum)


@router.delete("/forums/{forum_id}", response_model=CascadeResponse, summary="Delete a forum")
async def delete_forum(
    forum_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    """Author or admin; takes comments, likes and notifications with it"""
    plan = await moderation_service.delete_forum(db, forum_id, current_user, session_id)
    return CascadeResponse(deleted=plan.deleted_count, refreshed_users=len(plan.recipients))


@router.post("/forums/{forum_id}/like", response_model=ToggleResponse, summary="Like or unlike a forum")
async def like_forum(
    forum_id: str,
    data: LikeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    active, count = await forum_service.like_forum(db, forum_id, current_user, data.is_like)
    return ToggleResponse(active=active, count=count)


@router.post("/forums/{forum_id}/favorite", response_model=ToggleResponse, summary="Favorite or unfavorite a forum")
async def favorite_forum(
    forum_id: str,
    data: FavoriteRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    active, count = await forum_service.favorite_forum(db, forum_id, current_user, data.is_favorite)
    return ToggleResponse(active=active, count=count)


# ============ Comments ============

@router.get("/forums/{forum_id}/comments", response_model=CommentListResponse, summary="Comments with their replies")
async def list_comments(
    forum_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 10,
):
    total, items = await comment_service.list_comments(
        db, forum_id, current_user.id, offset=(page - 1) * page_size, limit=page_size
    )
    return CommentListResponse(items=items, total=total)


@router.post("/comments", response_model=CommentResponse, summary="Comment or reply")
async def create_comment(
    data: CommentCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    return await comment_service.create_comment(db, current_user, data, session_id)


@router.put("/comments/{comment_id}", response_model=CommentResponse, summary="Edit a comment")
async def update_comment(
    comment_id: str,
    data: CommentUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    return await comment_service.update_comment(db, comment_id, current_user, data, session_id)


@router.delete("/comments/{comment_id}", response_model=CascadeResponse, summary="Delete a comment")
async def delete_comment(
    comment_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    session_id: Annotated[str | None, Depends(get_session_id)],
):
    plan = await moderation_service.delete_comment(db, comment_id, current_user, session_id)
    return CascadeResponse(deleted=plan.deleted_count, refreshed_users=len(plan.recipients))


@router.post("/comments/{comment_id}/like", response_model=ToggleResponse, summary="Like or unlike a comment")
async def like_comment(
    comment_id: str,
    data: LikeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    active, count = await comment_service.like_comment(db, comment_id, current_user, data.is_like)
    return ToggleResponse(active=active, count=count)


# ============ Categories ============

@router.get("/categories", response_model=list[CategoryResponse], summary="All categories")
async def list_categories(
    _: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await forum_service.list_categories(db)
