"""Forum service"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError, ValidationError
from ..models.forum import Category, Forum
from ..models.notification import NotificationKind
from ..models.user import User
from ..repositories import categories, forum_categories, forum_favorites, forum_likes, forums, notify_subscribers
from ..repositories.notifications import NotificationTarget
from ..schemas.forum import ForumCreate, ForumResponse, ForumUpdate
from ..utils.permissions import ensure_member, ensure_owner
from .notification_service import NotificationEvent, ReconcileAction, notification_service
from .websocket_service import PushEvent, push_channel

logger = logging.getLogger(__name__)


class ForumService:
    """Forums and the interactions on them"""

    # ============ Forums ============

    @staticmethod
    async def get_forum(db: AsyncSession, forum_id: str) -> Forum:
        forum = await forums.get(db, forum_id)
        if forum is None:
            raise NotFoundError("Forum not found")
        return forum

    @staticmethod
    async def _check_categories(db: AsyncSession, category_ids: list[int]) -> list[int]:
        wanted = list(dict.fromkeys(category_ids))
        if not wanted:
            return []
        found = set(await categories.find_ids(db, Category.id.in_(wanted)))
        missing = [c for c in wanted if c not in found]
        if missing:
            raise NotFoundError(f"Category not found: {missing}")
        return wanted

    @staticmethod
    async def create_forum(db: AsyncSession, author: User, data: ForumCreate) -> Forum:
        """Create a forum and notify the author's subscribers"""
        ensure_member(author)
        category_ids = await ForumService._check_categories(db, data.category_ids)

        forum = Forum(
            title=data.title,
            description=data.description,
            author_id=author.id,
            is_anonymous=data.is_anonymous,
            image_refs=list(data.image_refs),
        )
        await forums.insert(db, forum)
        for category_id in category_ids:
            await forum_categories.add(db, forum.id, category_id)

        subscribers = await notify_subscribers.members(db, author.id)
        results = await notification_service.fan_out(
            db, NotificationKind.NEW_FORUM, author.id, subscribers, NotificationTarget(forum_id=forum.id)
        )
        await db.commit()
        logger.info("forum %s created by %s (%d subscribers notified)", forum.id, author.id, len(results))

        for recipient_id, result in results:
            await notification_service.publish(recipient_id, result, ReconcileAction.PUSH)
        return forum

    @staticmethod
    async def update_forum(
        db: AsyncSession, forum_id: str, actor: User, data: ForumUpdate, session_id: str | None = None
    ) -> Forum:
        forum = await ForumService.get_forum(db, forum_id)
        ensure_owner(actor, forum.author_id, "forum")

        if data.title is not None:
            forum.title = data.title
        if data.description is not None:
            forum.description = data.description
        if data.image_refs is not None:
            forum.image_refs = list(data.image_refs)
        if data.category_ids is not None:
            category_ids = await ForumService._check_categories(db, data.category_ids)
            await forum_categories.remove_owner(db, forum.id)
            for category_id in category_ids:
                await forum_categories.add(db, forum.id, category_id)

        await db.commit()
        await db.refresh(forum)
        await push_channel.emit_to_room(forum.id, PushEvent.FORUM_UPDATED, {"forum_id": forum.id}, session_id)
        return forum

    @staticmethod
    async def to_response(db: AsyncSession, forum: Forum) -> ForumResponse:
        return ForumResponse(
            id=forum.id,
            title=forum.title,
            description=forum.description,
            author_id=forum.author_id,
            is_anonymous=bool(forum.is_anonymous),
            image_refs=list(forum.image_refs or []),
            category_ids=sorted(await forum_categories.members(db, forum.id)),
            like_count=await forum_likes.size(db, forum.id),
            favorite_count=await forum_favorites.size(db, forum.id),
            created_at=forum.created_at,
            updated_at=forum.updated_at,
        )

    # ============ Likes & favorites ============

    @staticmethod
    async def like_forum(db: AsyncSession, forum_id: str, user: User, is_like: bool) -> tuple[bool, int]:
        """Like or unlike; the author hears about it unless they liked their own forum"""
        ensure_member(user)
        forum = await ForumService.get_forum(db, forum_id)

        if is_like:
            changed = await forum_likes.add(db, forum.id, user.id)
        else:
            changed = await forum_likes.remove(db, forum.id, user.id)

        action = ReconcileAction.PUSH if is_like else ReconcileAction.POP
        result = None
        if changed:
            event = NotificationEvent(
                NotificationKind.LIKE_FORUM, user.id, forum.author_id, NotificationTarget(forum_id=forum.id)
            )
            result = await notification_service.reconcile(db, event, action)
        await db.commit()

        if result is not None:
            await notification_service.publish(forum.author_id, result, action)
        return is_like, await forum_likes.size(db, forum.id)

    @staticmethod
    async def favorite_forum(db: AsyncSession, forum_id: str, user: User, is_favorite: bool) -> tuple[bool, int]:
        ensure_member(user)
        forum = await ForumService.get_forum(db, forum_id)
        if is_favorite:
            await forum_favorites.add(db, forum.id, user.id)
        else:
            await forum_favorites.remove(db, forum.id, user.id)
        await db.commit()
        return is_favorite, await forum_favorites.size(db, forum.id)

    @staticmethod
    async def create_category(db: AsyncSession, name: str, hex_color: str = "#000000") -> Category:
        if not name.strip():
            raise ValidationError("Category name is required")
        category = Category(name=name.strip(), hex_color=hex_color)
        await categories.insert(db, category)
        await db.commit()
        return category

    @staticmethod
    async def list_categories(db: AsyncSession) -> list[Category]:
        return await categories.find_many(db, order_by=(Category.id,))


forum_service = ForumService()
