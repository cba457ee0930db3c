"""Pydantic schemas"""
from .notification import NotificationView, NotificationListResponse, UnreadCountResponse
from .forum import (
    ForumCreate,
    ForumUpdate,
    ForumResponse,
    LikeRequest,
    FavoriteRequest,
    ToggleResponse,
    CommentCreate,
    CommentUpdate,
    CommentResponse,
)
from .user import UserCreate, UserProfileUpdate, UserResponse, FollowRequest, SubscribeRequest
from .announcement import AnnouncementCreate, AnnouncementResponse
from .report import (
    ReportCreate,
    ReportStatusUpdate,
    ReportResponse,
    ReportListResponse,
    ReportStatusUpdateResponse,
)
from .admin import IdsRequest, CategoryIdsRequest, CascadeResponse, CategoryCreate, CategoryResponse

__all__ = [
    "NotificationView",
    "NotificationListResponse",
    "UnreadCountResponse",
    "ForumCreate",
    "ForumUpdate",
    "ForumResponse",
    "LikeRequest",
    "FavoriteRequest",
    "ToggleResponse",
    "CommentCreate",
    "CommentUpdate",
    "CommentResponse",
    "UserCreate",
    "UserProfileUpdate",
    "UserResponse",
    "FollowRequest",
    "SubscribeRequest",
    "AnnouncementCreate",
    "AnnouncementResponse",
    "ReportCreate",
    "ReportStatusUpdate",
    "ReportResponse",
    "ReportListResponse",
    "ReportStatusUpdateResponse",
    "IdsRequest",
    "CategoryIdsRequest",
    "CascadeResponse",
    "CategoryCreate",
    "CategoryResponse",
]
