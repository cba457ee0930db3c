"""Notification aggregation engine"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..exceptions import NotFoundError
from ..models.forum import Comment, Forum
from ..models.notification import ACTION_TEXT, Notification, NotificationKind
from ..models.user import User
from ..repositories.notifications import (
    notification_repository as notification_repo,
    NotificationFilter,
    NotificationFilterByKey,
    NotificationFilterByRecipient,
    NotificationTarget,
    read_clause,
    unread_clause,
)
from ..schemas.notification import NotificationView
from .storage_service import get_storage_provider
from .websocket_service import PushEvent, push_channel

logger = logging.getLogger(__name__)
settings = get_settings()

ANONYMOUS_NAME = "anonymous user"
UNKNOWN_ACTOR = "unknown"


class ReconcileAction:
    PUSH = "push"
    POP = "pop"


class ReconcileMode:
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    INVALID = "invalid"


@dataclass(frozen=True)
class NotificationEvent:
    """An actor did `action_kind` to something owned by `recipient_id`"""
    action_kind: str
    actor_id: str
    recipient_id: str
    target: NotificationTarget


@dataclass(frozen=True)
class ReconcileResult:
    mode: str
    notification_id: str | None = None

    @property
    def changed(self) -> bool:
        return self.mode != ReconcileMode.INVALID


def notification_link(target: NotificationTarget) -> str:
    """Deep link: profile of a follower, then announcement, then forum[?commentId][&replyCommentId]"""
    if target.follower_user_id:
        return f"/profile/{target.follower_user_id}"
    if target.announcement_id:
        return f"/announcement/{target.announcement_id}"
    if not target.forum_id:
        return ""
    link = f"/forum/{target.forum_id}"
    params = []
    if target.comment_id:
        params.append(f"commentId={target.comment_id}")
    if target.reply_comment_id:
        params.append(f"replyCommentId={target.reply_comment_id}")
    if params:
        link += "?" + "&".join(params)
    return link


class NotificationService:
    """Create/merge/retire notification records and render them"""

    # ============ Reconcile ============

    @staticmethod
    async def reconcile(db: AsyncSession, event: NotificationEvent, action: str) -> ReconcileResult:
        """
        Fold one push/pop into the single record for (recipient, kind, target).

        Runs inside the caller's transaction and does not commit. The
        lookup and the create are not atomic: two first pushes racing on the
        same key can both create a record. That is accepted, later reconciles
        merge into the oldest record.
        """
        if action not in (ReconcileAction.PUSH, ReconcileAction.POP):
            raise ValueError(f"unknown reconcile action: {action}")
        if event.actor_id == event.recipient_id:
            logger.debug("reconcile skipped self action %s by %s", event.action_kind, event.actor_id)
            return ReconcileResult(ReconcileMode.INVALID)

        key = NotificationFilterByKey(
            recipient_id=event.recipient_id, action_kind=event.action_kind, target=event.target
        )
        existing = await notification_repo.find_by_key(db, key)

        if existing is None:
            if action == ReconcileAction.POP:
                return ReconcileResult(ReconcileMode.INVALID)
            now = datetime.now(timezone.utc)
            notification = Notification(
                action_kind=event.action_kind,
                recipient_id=event.recipient_id,
                created_at=now,
                updated_at=now,
                **event.target.as_columns(),
            )
            await notification_repo.insert(db, notification)
            await notification_repo.actors.add(db, notification.id, event.actor_id)
            logger.info(
                "notification %s created (%s -> %s, %s)",
                notification.id, event.actor_id, event.recipient_id, event.action_kind,
            )
            return ReconcileResult(ReconcileMode.CREATE, notification.id)

        if action == ReconcileAction.PUSH:
            await notification_repo.actors.add(db, existing.id, event.actor_id)
            existing.updated_at = datetime.now(timezone.utc)
            await db.flush()
            return ReconcileResult(ReconcileMode.UPDATE, existing.id)

        await notification_repo.actors.remove(db, existing.id, event.actor_id)
        await notification_repo.readers.remove(db, existing.id, event.actor_id)
        if await notification_repo.actors.size(db, existing.id) == 0:
            await notification_repo.delete_ids(db, [existing.id])
            logger.info("notification %s deleted, last actor %s popped", existing.id, event.actor_id)
            return ReconcileResult(ReconcileMode.DELETE, existing.id)
        return ReconcileResult(ReconcileMode.UPDATE, existing.id)

    @staticmethod
    async def fan_out(
        db: AsyncSession,
        action_kind: str,
        actor_id: str,
        recipient_ids: Iterable[str],
        target: NotificationTarget,
    ) -> list[tuple[str, ReconcileResult]]:
        """Push the same event to many recipients, skipping the actor"""
        results: list[tuple[str, ReconcileResult]] = []
        for recipient_id in dict.fromkeys(recipient_ids):
            if recipient_id == actor_id:
                continue
            event = NotificationEvent(action_kind, actor_id, recipient_id, target)
            results.append((recipient_id, await NotificationService.reconcile(db, event, ReconcileAction.PUSH)))
        return results

    @staticmethod
    async def remove(db: AsyncSession, flt: NotificationFilter) -> set[str]:
        """Delete every notification matching the filter; returns the affected recipients"""
        rows = await notification_repo.matching(db, flt)
        if not rows:
            return set()
        await notification_repo.delete_ids(db, [nid for nid, _ in rows])
        return {recipient_id for _, recipient_id in rows}

    @staticmethod
    async def retire_actor(db: AsyncSession, user_id: str) -> set[str]:
        """Pop a user from every notification they act in; returns the affected recipients"""
        recipients: set[str] = set()
        for notification in await notification_repo.acted_by(db, user_id):
            event = NotificationEvent(
                notification.action_kind, user_id, notification.recipient_id,
                NotificationTarget.of(notification),
            )
            result = await NotificationService.reconcile(db, event, ReconcileAction.POP)
            if result.changed:
                recipients.add(notification.recipient_id)
        return recipients

    # ============ Push ============

    @staticmethod
    async def publish(recipient_id: str, result: ReconcileResult, action: str) -> None:
        """Tell the recipient's live sockets what happened to their notification"""
        if result.mode == ReconcileMode.CREATE:
            await push_channel.emit_to_user(
                recipient_id, PushEvent.NOTIFICATION_CREATED, {"notification_id": result.notification_id}
            )
        elif result.mode == ReconcileMode.UPDATE:
            await push_channel.emit_to_user(
                recipient_id,
                PushEvent.NOTIFICATION_UPDATED,
                {"notification_id": result.notification_id, "action": action},
            )
        elif result.mode == ReconcileMode.DELETE:
            await push_channel.emit_to_user(
                recipient_id, PushEvent.NOTIFICATION_DELETED, {"notification_id": result.notification_id}
            )

    # ============ Display ============

    @staticmethod
    async def assemble_views(
        db: AsyncSession, notifications: list[Notification], viewer_id: str
    ) -> list[NotificationView]:
        if not notifications:
            return []
        ids = [n.id for n in notifications]
        actor_lists = await notification_repo.actor_lists(db, ids)
        reader_counts = await notification_repo.reader_counts(db, ids)

        latest_ids = {actors[-1] for actors in actor_lists.values() if actors}
        users: dict[str, User] = {}
        if latest_ids:
            result = await db.execute(select(User).where(User.id.in_(latest_ids)))
            users = {u.id: u for u in result.scalars().all()}

        forum_ids = {n.forum_id for n in notifications if n.forum_id}
        forums: dict[str, Forum] = {}
        if forum_ids:
            result = await db.execute(select(Forum).where(Forum.id.in_(forum_ids)))
            forums = {f.id: f for f in result.scalars().all()}

        comment_ids = {c for n in notifications for c in (n.comment_id, n.reply_comment_id) if c}
        comments: dict[str, Comment] = {}
        if comment_ids:
            result = await db.execute(select(Comment).where(Comment.id.in_(comment_ids)))
            comments = {c.id: c for c in result.scalars().all()}

        views = []
        for notification in notifications:
            actors = actor_lists.get(notification.id, [])
            if not actors:
                continue
            views.append(
                await NotificationService.assemble_view(
                    notification,
                    actors=actors,
                    reader_count=reader_counts.get(notification.id, 0),
                    actor=users.get(actors[-1]),
                    forum=forums.get(notification.forum_id or ""),
                    comment=comments.get(notification.reply_comment_id or notification.comment_id or ""),
                    viewer_id=viewer_id,
                )
            )
        return views

    @staticmethod
    async def assemble_view(
        notification: Notification,
        *,
        actors: list[str],
        reader_count: int,
        actor: User | None,
        forum: Forum | None,
        comment: Comment | None,
        viewer_id: str,
    ) -> NotificationView:
        """
        Render one record for its recipient.

        The most recent actor names the notification. When that actor wrote
        the anonymous forum or comment the record points at, their identity is
        masked, unless the viewer is that very author.
        """
        actor_id = actors[-1]
        display_name = actor.display_name if actor else UNKNOWN_ACTOR
        image_ref = (actor.image_ref if actor else None) or settings.default_avatar_ref

        is_anonymous = bool(
            (forum is not None and forum.is_anonymous and forum.author_id == actor_id)
            or (comment is not None and comment.is_anonymous and comment.author_id == actor_id)
        )
        if is_anonymous:
            display_name = ANONYMOUS_NAME
            image_ref = settings.anonymous_avatar_ref
            if actor_id == viewer_id:
                display_name += " (you)"
            else:
                actor_id = UNKNOWN_ACTOR

        text = ACTION_TEXT.get(notification.action_kind, notification.action_kind)
        if notification.action_kind == NotificationKind.NEW_ANNOUNCEMENT:
            body = f"{text} by {display_name}"
        elif len(actors) > 1:
            body = f"{display_name} and {len(actors) - 1} others {text}"
        else:
            body = f"{display_name} {text}"

        return NotificationView(
            id=notification.id,
            action_kind=notification.action_kind,
            body=body,
            actor_id=actor_id,
            actor_display_name=display_name,
            actor_image_url=await get_storage_provider().signed_url(image_ref),
            link=notification_link(NotificationTarget.of(notification)),
            is_read=reader_count == len(actors),
            notified_at=notification.updated_at or notification.created_at,
        )

    # ============ Recipient operations ============

    @staticmethod
    async def list_for_recipient(
        db: AsyncSession,
        viewer_id: str,
        is_read: str = "all",
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[int, list[NotificationView]]:
        clauses = list(NotificationFilterByRecipient(viewer_id).clauses())
        if is_read == "read":
            clauses.append(read_clause())
        elif is_read == "unread":
            clauses.append(unread_clause())

        total = await notification_repo.count(db, *clauses)
        page = await notification_repo.find_many(
            db,
            *clauses,
            offset=offset,
            limit=limit,
            order_by=(Notification.updated_at.desc(), Notification.id),
        )
        return total, await NotificationService.assemble_views(db, page, viewer_id)

    @staticmethod
    async def _get_owned(db: AsyncSession, notification_id: str, viewer_id: str) -> Notification:
        notification = await notification_repo.get(db, notification_id)
        if notification is None or notification.recipient_id != viewer_id:
            raise NotFoundError("Notification not found")
        return notification

    @staticmethod
    async def get_view(db: AsyncSession, notification_id: str, viewer_id: str) -> NotificationView:
        notification = await NotificationService._get_owned(db, notification_id, viewer_id)
        views = await NotificationService.assemble_views(db, [notification], viewer_id)
        if not views:
            raise NotFoundError("Notification not found")
        return views[0]

    @staticmethod
    async def read(db: AsyncSession, notification_id: str, viewer_id: str) -> None:
        """Mark read: readers become the current actors"""
        await NotificationService._get_owned(db, notification_id, viewer_id)
        await notification_repo.mark_read(db, Notification.id == notification_id)
        await db.commit()
        await push_channel.emit_to_user(
            viewer_id, PushEvent.NOTIFICATION_READ, {"notification_id": notification_id}
        )

    @staticmethod
    async def read_all(db: AsyncSession, viewer_id: str) -> None:
        await notification_repo.mark_read(db, *NotificationFilterByRecipient(viewer_id).clauses())
        await db.commit()
        await push_channel.emit_to_user(viewer_id, PushEvent.NOTIFICATION_READ, {"notification_id": None})

    @staticmethod
    async def count_unread(db: AsyncSession, viewer_id: str) -> int:
        return await notification_repo.count(
            db, *NotificationFilterByRecipient(viewer_id).clauses(), unread_clause()
        )

    @staticmethod
    async def delete(db: AsyncSession, notification_id: str, viewer_id: str) -> None:
        await NotificationService._get_owned(db, notification_id, viewer_id)
        await notification_repo.delete_ids(db, [notification_id])
        await db.commit()
        logger.info("notification %s deleted by recipient %s", notification_id, viewer_id)


notification_service = NotificationService()
