"""Data models"""
from .user import User, UserFollow, UserNotifySubscription, UserType
from .forum import Category, Forum, ForumCategory, ForumLike, ForumFavorite, Comment, CommentLike
from .announcement import Announcement, AnnouncementSeen
from .notification import Notification, NotificationActor, NotificationReader, NotificationKind
from .report import Report, ReportStatus

__all__ = [
    "User",
    "UserFollow",
    "UserNotifySubscription",
    "UserType",
    "Category",
    "Forum",
    "ForumCategory",
    "ForumLike",
    "ForumFavorite",
    "Comment",
    "CommentLike",
    "Announcement",
    "AnnouncementSeen",
    "Notification",
    "NotificationActor",
    "NotificationReader",
    "NotificationKind",
    "Report",
    "ReportStatus",
]
