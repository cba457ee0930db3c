"""WebSocket push channel"""
import json
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class PushEvent:
    """Event names sent to clients"""
    NOTIFICATION_CREATED = "notificationCreated"
    NOTIFICATION_UPDATED = "notificationUpdated"
    NOTIFICATION_DELETED = "notificationDeleted"
    NOTIFICATION_READ = "notificationRead"
    NOTIFICATION_REFRESH = "notificationRefresh"
    FORUM_UPDATED = "forumUpdated"
    FORUM_DELETED = "forumDeleted"
    COMMENT_CREATED = "commentCreated"
    COMMENT_UPDATED = "commentUpdated"
    COMMENT_DELETED = "commentDeleted"
    USER_CONNECTED = "userConnected"
    USER_UPDATED = "userUpdated"
    USER_DISCONNECTED = "userDisconnected"
    ADMIN_CONNECTED = "adminConnected"


def create_message(event: str, data: Any = None) -> dict[str, Any]:
    """Standard envelope for every pushed event"""
    return {
        "event": event,
        "data": data if data is not None else {},
        "timestamp": datetime.now().isoformat(),
    }


class ConnectionManager:
    """Accepted sockets of one namespace plus their room membership"""

    def __init__(self, namespace: str):
        self.namespace = namespace
        # {connection_id: websocket}
        self.active_connections: dict[str, WebSocket] = {}
        # {room_id: {connection_id, ...}}
        self.rooms: dict[str, set[str]] = {}
        self.failed_sends = 0

    async def connect(self, websocket: WebSocket, connection_id: str | None = None) -> str:
        await websocket.accept()
        cid = connection_id or str(uuid.uuid4())
        self.active_connections[cid] = websocket
        logger.info("[%s] connection %s opened", self.namespace, cid)
        return cid

    def disconnect(self, connection_id: str) -> None:
        for room_id in self.rooms_of(connection_id):
            self.leave_room(connection_id, room_id)
        if self.active_connections.pop(connection_id, None) is not None:
            logger.info("[%s] connection %s closed", self.namespace, connection_id)

    def join_room(self, connection_id: str, room_id: str) -> None:
        self.rooms.setdefault(room_id, set()).add(connection_id)

    def leave_room(self, connection_id: str, room_id: str) -> None:
        members = self.rooms.get(room_id)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self.rooms[room_id]

    def rooms_of(self, connection_id: str) -> list[str]:
        return [room_id for room_id, members in self.rooms.items() if connection_id in members]

    def room_members(self, room_id: str) -> list[str]:
        return sorted(self.rooms.get(room_id, ()))

    async def send_to(self, connection_id: str, message: dict[str, Any]) -> bool:
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return False
        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False, default=str))
        except Exception as e:
            self.failed_sends += 1
            logger.error("[%s] send to %s failed: %s", self.namespace, connection_id, e)
            return False
        return True

    async def emit_to_room(
        self, room_id: str, message: dict[str, Any], exclude: str | None = None
    ) -> int:
        sent = 0
        for cid in self.room_members(room_id):
            if cid == exclude:
                continue
            if await self.send_to(cid, message):
                sent += 1
        if sent == 0:
            logger.debug("[%s] nobody in room %s for %s", self.namespace, room_id, message.get("event"))
        return sent

    async def broadcast(self, message: dict[str, Any], exclude: str | None = None) -> int:
        sent = 0
        for cid in list(self.active_connections):
            if cid == exclude:
                continue
            if await self.send_to(cid, message):
                sent += 1
        return sent

    async def close(self, connection_id: str, code: int = 1000) -> None:
        websocket = self.active_connections.get(connection_id)
        self.disconnect(connection_id)
        if websocket is None:
            return
        try:
            await websocket.close(code=code)
        except Exception as e:
            logger.debug("[%s] close of %s failed: %s", self.namespace, connection_id, e)

    def get_total_connections(self) -> int:
        return len(self.active_connections)


class PushChannel:
    """
    Fire-and-forget emission used by the services.

    Notification events go to the caller's user room on the notification
    namespace; content events go to the forum room on the forum namespace.
    Nothing is retried or queued, a user without a live socket simply
    misses the push and reads the stored state on the next fetch.
    """

    def __init__(self, forum: ConnectionManager, notification: ConnectionManager):
        self.forum = forum
        self.notification = notification

    async def emit_to_user(self, user_id: str, event: str, payload: Any = None) -> int:
        return await self.notification.emit_to_room(user_id, create_message(event, payload))

    async def emit_to_room(
        self, room_id: str, event: str, payload: Any = None, session_id: str | None = None
    ) -> int:
        """Emit to a forum room; sessionId lets the sending tab ignore its own echo"""
        data = dict(payload or {})
        data["sessionId"] = session_id
        return await self.forum.emit_to_room(room_id, create_message(event, data))

    async def refresh_users(self, user_ids: Iterable[str]) -> int:
        """One notificationRefresh per distinct user"""
        sent = 0
        for user_id in sorted(set(user_ids)):
            sent += await self.emit_to_user(user_id, PushEvent.NOTIFICATION_REFRESH)
        return sent


forum_manager = ConnectionManager("forum")
notification_manager = ConnectionManager("notification")
admin_manager = ConnectionManager("admin")

push_channel = PushChannel(forum_manager, notification_manager)
