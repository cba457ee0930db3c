"""Comment service"""
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..exceptions import NotFoundError, ValidationError
from ..models.forum import Comment
from ..models.notification import NotificationKind
from ..models.user import User
from ..repositories import comment_likes, comments, users
from ..repositories.notifications import NotificationTarget
from ..schemas.forum import CommentCreate, CommentUpdate, CommentView
from ..utils.permissions import ensure_member, ensure_owner
from .forum_service import ForumService
from .notification_service import (
    ANONYMOUS_NAME,
    UNKNOWN_ACTOR,
    NotificationEvent,
    ReconcileAction,
    notification_service,
)
from .storage_service import get_storage_provider
from .websocket_service import PushEvent, push_channel

logger = logging.getLogger(__name__)
settings = get_settings()


def comment_event_payload(comment: Comment) -> dict[str, str | None]:
    """Room payload: a reply is addressed by its top-level comment plus its own id"""
    if comment.parent_id:
        return {"comment_id": comment.parent_id, "reply_comment_id": comment.id}
    return {"comment_id": comment.id, "reply_comment_id": None}


def like_target(comment: Comment) -> NotificationTarget:
    if comment.parent_id:
        return NotificationTarget(
            forum_id=comment.forum_id, comment_id=comment.parent_id, reply_comment_id=comment.id
        )
    return NotificationTarget(forum_id=comment.forum_id, comment_id=comment.id)


class CommentService:
    """Comments and replies"""

    @staticmethod
    async def get_comment(db: AsyncSession, comment_id: str) -> Comment:
        comment = await comments.get(db, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    @staticmethod
    async def create_comment(
        db: AsyncSession, author: User, data: CommentCreate, session_id: str | None = None
    ) -> Comment:
        """
        Create a top-level comment (notifies the forum author) or a reply
        (notifies the author of the comment replied to).
        """
        ensure_member(author)
        forum = await ForumService.get_forum(db, data.forum_id)

        parent: Comment | None = None
        if data.parent_id:
            parent = await CommentService.get_comment(db, data.parent_id)
            if parent.forum_id != forum.id:
                raise ValidationError("Parent comment belongs to another forum")
            # replies hang off the top-level comment
            if parent.parent_id:
                parent = await CommentService.get_comment(db, parent.parent_id)

        comment = Comment(
            forum_id=forum.id,
            parent_id=parent.id if parent else None,
            author_id=author.id,
            text=data.text,
            is_anonymous=data.is_anonymous,
            image_refs=list(data.image_refs),
            created_at=datetime.now(timezone.utc),
        )
        await comments.insert(db, comment)

        if parent is None:
            recipient_id = forum.author_id
            event = NotificationEvent(
                NotificationKind.NEW_COMMENT, author.id, recipient_id, NotificationTarget(forum_id=forum.id)
            )
        else:
            recipient_id = parent.author_id
            event = NotificationEvent(
                NotificationKind.NEW_REPLY,
                author.id,
                recipient_id,
                NotificationTarget(forum_id=forum.id, comment_id=parent.id),
            )
        result = await notification_service.reconcile(db, event, ReconcileAction.PUSH)
        await db.commit()
        logger.info("comment %s created on forum %s by %s", comment.id, forum.id, author.id)

        await notification_service.publish(recipient_id, result, ReconcileAction.PUSH)
        await push_channel.emit_to_room(
            forum.id, PushEvent.COMMENT_CREATED, comment_event_payload(comment), session_id
        )
        return comment

    @staticmethod
    async def update_comment(
        db: AsyncSession, comment_id: str, actor: User, data: CommentUpdate, session_id: str | None = None
    ) -> Comment:
        comment = await CommentService.get_comment(db, comment_id)
        ensure_owner(actor, comment.author_id, "comment")
        if data.text is not None:
            comment.text = data.text
        if data.image_refs is not None:
            comment.image_refs = list(data.image_refs)
        await db.commit()
        await db.refresh(comment)
        await push_channel.emit_to_room(
            comment.forum_id, PushEvent.COMMENT_UPDATED, comment_event_payload(comment), session_id
        )
        return comment

    @staticmethod
    async def like_comment(db: AsyncSession, comment_id: str, user: User, is_like: bool) -> tuple[bool, int]:
        ensure_member(user)
        comment = await CommentService.get_comment(db, comment_id)

        if is_like:
            changed = await comment_likes.add(db, comment.id, user.id)
        else:
            changed = await comment_likes.remove(db, comment.id, user.id)

        action = ReconcileAction.PUSH if is_like else ReconcileAction.POP
        result = None
        if changed:
            event = NotificationEvent(NotificationKind.LIKE_COMMENT, user.id, comment.author_id, like_target(comment))
            result = await notification_service.reconcile(db, event, action)
        await db.commit()

        if result is not None:
            await notification_service.publish(comment.author_id, result, action)
        return is_like, await comment_likes.size(db, comment.id)

    # ============ Listing ============

    @staticmethod
    async def _view(db: AsyncSession, comment: Comment, author: User | None, viewer_id: str) -> CommentView:
        """Anonymous authors show as `anonymous user`, with `(you)` for the author themselves"""
        storage = get_storage_provider()
        author_id = comment.author_id
        name = author.display_name if author else UNKNOWN_ACTOR
        image_ref = (author.image_ref if author else None) or settings.default_avatar_ref

        if comment.is_anonymous:
            name = ANONYMOUS_NAME
            image_ref = settings.anonymous_avatar_ref
            if author_id == viewer_id:
                name += " (you)"
            else:
                author_id = UNKNOWN_ACTOR

        return CommentView(
            id=comment.id,
            forum_id=comment.forum_id,
            parent_id=comment.parent_id,
            author_id=author_id,
            author_name=name,
            author_image_url=await storage.signed_url(image_ref),
            is_anonymous=bool(comment.is_anonymous),
            text=comment.text,
            image_urls=[storage.public_url(ref) for ref in comment.image_refs or []],
            like_count=await comment_likes.size(db, comment.id),
            is_liked=await comment_likes.contains(db, comment.id, viewer_id),
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )

    @staticmethod
    async def list_comments(
        db: AsyncSession, forum_id: str, viewer_id: str, offset: int = 0, limit: int = 10
    ) -> tuple[int, list[CommentView]]:
        """Top-level comments oldest first, a page at a time, each with all of its replies"""
        forum = await ForumService.get_forum(db, forum_id)
        top_clauses = (Comment.forum_id == forum.id, Comment.parent_id.is_(None))
        oldest_first = (Comment.created_at, Comment.id)

        total = await comments.count(db, *top_clauses)
        page = await comments.find_many(db, *top_clauses, offset=offset, limit=limit, order_by=oldest_first)
        if not page:
            return total, []

        replies = await comments.find_many(
            db, Comment.parent_id.in_([c.id for c in page]), order_by=oldest_first
        )
        author_ids = {c.author_id for c in [*page, *replies]}
        authors = {u.id: u for u in await users.find_many(db, User.id.in_(author_ids))}

        views: list[CommentView] = []
        for comment in page:
            view = await CommentService._view(db, comment, authors.get(comment.author_id), viewer_id)
            view.replies = [
                await CommentService._view(db, reply, authors.get(reply.author_id), viewer_id)
                for reply in replies
                if reply.parent_id == comment.id
            ]
            views.append(view)
        return total, views


comment_service = CommentService()
