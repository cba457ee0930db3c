"""Cascading deletes"""
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import NotFoundError
from ..models.announcement import Announcement
from ..models.forum import Category, Comment, Forum
from ..models.notification import NotificationKind
from ..models.user import User
from ..repositories import (
    announcement_seen,
    announcements,
    categories,
    comment_likes,
    comments,
    followers,
    forum_categories,
    forum_favorites,
    forum_likes,
    forums,
    notify_subscribers,
    users,
)
from ..repositories.notifications import (
    NotificationFilterByAnnouncement,
    NotificationFilterByComments,
    NotificationFilterByFollower,
    NotificationFilterByForum,
    NotificationFilterByRecipient,
    NotificationTarget,
)
from ..utils.permissions import ensure_owner_or_admin
from .comment_service import comment_event_payload
from .notification_service import NotificationEvent, ReconcileAction, notification_service
from .report_service import ReportService
from .storage_service import delete_files_quietly
from .websocket_service import PushEvent, push_channel

logger = logging.getLogger(__name__)


@dataclass
class CascadePlan:
    """
    Everything a delete touches, enumerated before any mutation.

    `recipients` collects the owners of notifications that changed while
    the plan was applied; they get one refresh each once it is committed.
    """
    forums: list[Forum] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    # comments whose deletion is announced to the room (replies of a deleted comment are implied)
    announced_comments: list[Comment] = field(default_factory=list)
    announcements: list[Announcement] = field(default_factory=list)
    stripped_forum_ids: list[str] = field(default_factory=list)
    image_refs: list[str] = field(default_factory=list)
    recipients: set[str] = field(default_factory=set)
    failed_steps: list[str] = field(default_factory=list)

    @property
    def forum_ids(self) -> list[str]:
        return [f.id for f in self.forums]

    @property
    def comment_ids(self) -> list[str]:
        return [c.id for c in self.comments]

    @property
    def announcement_ids(self) -> list[str]:
        return [a.id for a in self.announcements]

    @property
    def deleted_count(self) -> int:
        return len(self.forums) + len(self.comments) + len(self.announcements)


def _images(items: Iterable[Forum | Comment | Announcement]) -> list[str]:
    return [ref for item in items for ref in (item.image_refs or [])]


class ModerationService:
    """Deletes that ripple into comments, notifications, reports and the social graph"""

    # ============ Plan ============

    @staticmethod
    async def _plan_forums(db: AsyncSession, forum_list: list[Forum]) -> CascadePlan:
        plan = CascadePlan(forums=list(forum_list))
        if plan.forums:
            plan.comments = await comments.find_many(db, Comment.forum_id.in_(plan.forum_ids))
        plan.image_refs = _images(plan.forums) + _images(plan.comments)
        return plan

    @staticmethod
    async def _plan_comments(db: AsyncSession, seeds: list[Comment]) -> CascadePlan:
        """A top-level comment takes its replies with it; a lone reply goes alone"""
        top_ids = [c.id for c in seeds if c.parent_id is None]
        replies = await comments.find_many(db, Comment.parent_id.in_(top_ids)) if top_ids else []

        by_id: dict[str, Comment] = {}
        for comment in [*seeds, *replies]:
            by_id.setdefault(comment.id, comment)

        plan = CascadePlan(comments=list(by_id.values()))
        plan.announced_comments = [c for c in seeds if c.parent_id is None or c.parent_id not in top_ids]
        plan.image_refs = _images(plan.comments)
        return plan

    # ============ Apply ============

    @staticmethod
    async def _apply_forums(db: AsyncSession, plan: CascadePlan) -> None:
        if not plan.forums:
            return
        forum_ids = plan.forum_ids
        comment_ids = plan.comment_ids

        plan.recipients |= await notification_service.remove(db, NotificationFilterByForum(tuple(forum_ids)))
        if comment_ids:
            plan.recipients |= await notification_service.remove(
                db, NotificationFilterByComments(tuple(comment_ids))
            )
        await ReportService.invalidate(db, forum_ids=forum_ids, comment_ids=comment_ids)

        await comment_likes.remove_owner(db, *comment_ids)
        await forum_likes.remove_owner(db, *forum_ids)
        await forum_favorites.remove_owner(db, *forum_ids)
        await forum_categories.remove_owner(db, *forum_ids)
        await comments.delete_many(db, Comment.forum_id.in_(forum_ids), Comment.parent_id.is_not(None))
        await comments.delete_many(db, Comment.forum_id.in_(forum_ids))
        await forums.delete_many(db, Forum.id.in_(forum_ids))

    @staticmethod
    async def _apply_comments(db: AsyncSession, plan: CascadePlan) -> None:
        if not plan.comments:
            return
        comment_ids = plan.comment_ids

        plan.recipients |= await notification_service.remove(db, NotificationFilterByComments(tuple(comment_ids)))
        await ReportService.invalidate(db, comment_ids=comment_ids)
        await comment_likes.remove_owner(db, *comment_ids)
        await comments.delete_many(db, Comment.id.in_(comment_ids), Comment.parent_id.is_not(None))
        await comments.delete_many(db, Comment.id.in_(comment_ids))

        await ModerationService._retire_commenters(db, plan)

    @staticmethod
    async def _retire_commenters(db: AsyncSession, plan: CascadePlan) -> None:
        """Pop authors from new-comment/new-reply records once they have nothing left there"""
        deleted_ids = set(plan.comment_ids)
        seen: set[tuple[str, str, str | None]] = set()

        for comment in plan.comments:
            key = (comment.author_id, comment.forum_id, comment.parent_id)
            if key in seen:
                continue
            seen.add(key)

            if comment.parent_id is None:
                remaining = await comments.count(
                    db,
                    Comment.forum_id == comment.forum_id,
                    Comment.parent_id.is_(None),
                    Comment.author_id == comment.author_id,
                )
                forum = await forums.get(db, comment.forum_id)
                if remaining or forum is None:
                    continue
                event = NotificationEvent(
                    NotificationKind.NEW_COMMENT,
                    comment.author_id,
                    forum.author_id,
                    NotificationTarget(forum_id=forum.id),
                )
            else:
                # the parent's own deletion already removed its new-reply record
                if comment.parent_id in deleted_ids:
                    continue
                remaining = await comments.count(
                    db, Comment.parent_id == comment.parent_id, Comment.author_id == comment.author_id
                )
                parent = await comments.get(db, comment.parent_id)
                if remaining or parent is None:
                    continue
                event = NotificationEvent(
                    NotificationKind.NEW_REPLY,
                    comment.author_id,
                    parent.author_id,
                    NotificationTarget(forum_id=comment.forum_id, comment_id=parent.id),
                )

            result = await notification_service.reconcile(db, event, ReconcileAction.POP)
            if result.changed:
                plan.recipients.add(event.recipient_id)

    @staticmethod
    async def _apply_announcements(db: AsyncSession, plan: CascadePlan) -> None:
        if not plan.announcements:
            return
        ids = plan.announcement_ids
        plan.recipients |= await notification_service.remove(db, NotificationFilterByAnnouncement(tuple(ids)))
        await announcement_seen.remove_owner(db, *ids)
        await announcements.delete_many(db, Announcement.id.in_(ids))

    @staticmethod
    async def _branch(
        db: AsyncSession, plan: CascadePlan, name: str, step: Callable[[], Awaitable[None]]
    ) -> None:
        """Run a secondary step in a SAVEPOINT; a failure is logged and rolled back, the cascade goes on"""
        try:
            async with db.begin_nested():
                await step()
        except Exception:
            plan.failed_steps.append(name)
            logger.exception("cascade step '%s' failed and was rolled back", name)

    # ============ Finish ============

    @staticmethod
    async def _finish(plan: CascadePlan, session_id: str | None, exclude_recipients: Iterable[str] = ()) -> None:
        """After commit: room events, file cleanup, then one refresh per affected recipient"""
        for forum in plan.forums:
            await push_channel.emit_to_room(forum.id, PushEvent.FORUM_DELETED, {"forum_id": forum.id}, session_id)
        deleted_forum_ids = set(plan.forum_ids)
        for comment in plan.announced_comments:
            if comment.forum_id in deleted_forum_ids:
                continue
            await push_channel.emit_to_room(
                comment.forum_id, PushEvent.COMMENT_DELETED, comment_event_payload(comment), session_id
            )
        for forum_id in plan.stripped_forum_ids:
            await push_channel.emit_to_room(forum_id, PushEvent.FORUM_UPDATED, {"forum_id": forum_id}, session_id)

        if plan.image_refs:
            await delete_files_quietly(plan.image_refs)

        await push_channel.refresh_users(plan.recipients - set(exclude_recipients))

    # ============ Operations ============

    @staticmethod
    async def delete_forum(
        db: AsyncSession, forum_id: str, actor: User, session_id: str | None = None
    ) -> CascadePlan:
        forum = await forums.get(db, forum_id)
        if forum is None:
            raise NotFoundError("Forum not found")
        ensure_owner_or_admin(actor, forum.author_id, "forum")

        plan = await ModerationService._plan_forums(db, [forum])
        await ModerationService._apply_forums(db, plan)
        await db.commit()
        logger.info(
            "forum %s deleted by %s (%d comments, %d recipients)",
            forum_id, actor.id, len(plan.comments), len(plan.recipients),
        )
        await ModerationService._finish(plan, session_id)
        return plan

    @staticmethod
    async def delete_comment(
        db: AsyncSession, comment_id: str, actor: User, session_id: str | None = None
    ) -> CascadePlan:
        comment = await comments.get(db, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found")
        ensure_owner_or_admin(actor, comment.author_id, "comment")

        plan = await ModerationService._plan_comments(db, [comment])
        await ModerationService._apply_comments(db, plan)
        await db.commit()
        logger.info("comment %s deleted by %s (%d removed)", comment_id, actor.id, len(plan.comments))
        await ModerationService._finish(plan, session_id)
        return plan

    @staticmethod
    async def delete_announcement(db: AsyncSession, announcement_id: str, actor: User) -> CascadePlan:
        announcement = await announcements.get(db, announcement_id)
        if announcement is None:
            raise NotFoundError("Announcement not found")
        ensure_owner_or_admin(actor, announcement.author_id, "announcement")

        plan = CascadePlan(announcements=[announcement], image_refs=_images([announcement]))
        await ModerationService._apply_announcements(db, plan)
        await db.commit()
        logger.info("announcement %s deleted by %s", announcement_id, actor.id)
        await ModerationService._finish(plan, None)
        return plan

    @staticmethod
    async def delete_user(db: AsyncSession, user_id: str, session_id: str | None = None) -> CascadePlan:
        """
        Remove a user and everything hanging off them.

        Authored forums, comments and announcements go through their own
        cascades; likes, favorites, follows and subscriptions are pulled; the
        user is popped from every notification they acted in. Those branches
        are best-effort. Deleting the user row and the notifications they own
        is the primary step and propagates.
        """
        user = await users.get(db, user_id)
        if user is None:
            raise NotFoundError("User not found")

        authored_forums = await forums.find_many(db, Forum.author_id == user_id)
        plan = await ModerationService._plan_forums(db, authored_forums)
        authored_forum_ids = plan.forum_ids

        comment_clauses = [Comment.author_id == user_id]
        if authored_forum_ids:
            comment_clauses.append(Comment.forum_id.not_in(authored_forum_ids))
        comment_plan = await ModerationService._plan_comments(db, await comments.find_many(db, *comment_clauses))
        # replies by others under the user's comments inside the user's forums are already in the forum plan
        comment_plan.comments = [c for c in comment_plan.comments if c.forum_id not in authored_forum_ids]

        plan.announcements = await announcements.find_many(db, Announcement.author_id == user_id)
        plan.image_refs += _images(plan.announcements)
        if user.image_ref:
            plan.image_refs.append(user.image_ref)

        async def _forums_step() -> None:
            await ModerationService._apply_forums(db, plan)

        async def _comments_step() -> None:
            await ModerationService._apply_comments(db, comment_plan)

        async def _announcements_step() -> None:
            await ModerationService._apply_announcements(db, plan)

        async def _memberships_step() -> None:
            await forum_likes.remove_member_everywhere(db, user_id)
            await forum_favorites.remove_member_everywhere(db, user_id)
            await comment_likes.remove_member_everywhere(db, user_id)
            await announcement_seen.remove_member_everywhere(db, user_id)

        async def _actor_step() -> None:
            plan.recipients |= await notification_service.retire_actor(db, user_id)
            plan.recipients |= await notification_service.remove(db, NotificationFilterByFollower(user_id))

        async def _social_step() -> None:
            await followers.remove_member_everywhere(db, user_id)
            await followers.remove_owner(db, user_id)
            await notify_subscribers.remove_member_everywhere(db, user_id)
            await notify_subscribers.remove_owner(db, user_id)

        await ModerationService._branch(db, plan, "forums", _forums_step)
        await ModerationService._branch(db, comment_plan, "comments", _comments_step)
        await ModerationService._branch(db, plan, "announcements", _announcements_step)
        await ModerationService._branch(db, plan, "likes", _memberships_step)
        await ModerationService._branch(db, plan, "notification actor", _actor_step)
        await ModerationService._branch(db, plan, "social graph", _social_step)

        plan.comments += comment_plan.comments
        plan.announced_comments += comment_plan.announced_comments
        plan.image_refs += comment_plan.image_refs
        plan.recipients |= comment_plan.recipients
        plan.failed_steps += comment_plan.failed_steps

        await notification_service.remove(db, NotificationFilterByRecipient(user_id))
        await users.delete_many(db, User.id == user_id)
        await db.commit()
        logger.info(
            "user %s deleted (%d forums, %d comments, %d announcements, failed steps: %s)",
            user_id, len(plan.forums), len(plan.comments), len(plan.announcements), plan.failed_steps or "none",
        )

        await ModerationService._finish(plan, session_id, exclude_recipients=[user_id])
        return plan

    @staticmethod
    async def delete_categories(
        db: AsyncSession, category_ids: list[int], session_id: str | None = None
    ) -> CascadePlan:
        """
        Forums left with no category are deleted with the full forum cascade;
        forums that keep another category only lose the tag.
        """
        wanted = list(dict.fromkeys(category_ids))
        found = set(await categories.find_ids(db, Category.id.in_(wanted)))
        missing = [c for c in wanted if c not in found]
        if missing:
            raise NotFoundError(f"Category not found: {missing}")

        tagged_forum_ids = set(await forum_categories.owners_of_any(db, wanted))
        doomed: list[str] = []
        stripped: list[str] = []
        for forum_id in sorted(tagged_forum_ids):
            remaining = set(await forum_categories.members(db, forum_id)) - set(wanted)
            (stripped if remaining else doomed).append(forum_id)

        plan = await ModerationService._plan_forums(
            db, await forums.find_many(db, Forum.id.in_(doomed)) if doomed else []
        )
        plan.stripped_forum_ids = stripped

        await ModerationService._apply_forums(db, plan)
        await forum_categories.remove_member_everywhere(db, *wanted)
        await categories.delete_many(db, Category.id.in_(wanted))
        await db.commit()
        logger.info(
            "categories %s deleted (%d forums deleted, %d forums untagged)", wanted, len(doomed), len(stripped)
        )

        await ModerationService._finish(plan, session_id)
        return plan


moderation_service = ModerationService()
