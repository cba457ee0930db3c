"""Document store adapter: one repository per collection, one set per association table"""
from ..models import (
    Announcement,
    AnnouncementSeen,
    Category,
    Comment,
    CommentLike,
    Forum,
    ForumCategory,
    ForumFavorite,
    ForumLike,
    Report,
    User,
    UserFollow,
    UserNotifySubscription,
)
from .base import MembershipSet, Repository
from .notifications import (
    NotificationFilter,
    NotificationFilterByAnnouncement,
    NotificationFilterByComments,
    NotificationFilterByFollower,
    NotificationFilterByForum,
    NotificationFilterByKey,
    NotificationFilterByRecipient,
    NotificationRepository,
    NotificationTarget,
    notification_repository,
)

users = Repository(User)
forums = Repository(Forum)
comments = Repository(Comment)
categories = Repository(Category)
announcements = Repository(Announcement)
reports = Repository(Report)

forum_likes = MembershipSet(ForumLike, "forum_id", "user_id")
forum_favorites = MembershipSet(ForumFavorite, "forum_id", "user_id")
forum_categories = MembershipSet(ForumCategory, "forum_id", "category_id")
comment_likes = MembershipSet(CommentLike, "comment_id", "user_id")
announcement_seen = MembershipSet(AnnouncementSeen, "announcement_id", "user_id")
# owner = the followed user, member = the follower
followers = MembershipSet(UserFollow, "following_id", "follower_id")
# owner = the publisher, member = the subscriber
notify_subscribers = MembershipSet(UserNotifySubscription, "publisher_id", "subscriber_id")

__all__ = [
    "MembershipSet",
    "Repository",
    "NotificationFilter",
    "NotificationFilterByAnnouncement",
    "NotificationFilterByComments",
    "NotificationFilterByFollower",
    "NotificationFilterByForum",
    "NotificationFilterByKey",
    "NotificationFilterByRecipient",
    "NotificationRepository",
    "NotificationTarget",
    "users",
    "forums",
    "comments",
    "categories",
    "announcements",
    "reports",
    "notification_repository",
    "forum_likes",
    "forum_favorites",
    "forum_categories",
    "comment_likes",
    "announcement_seen",
    "followers",
    "notify_subscribers",
]
