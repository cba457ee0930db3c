"""Live presence: forum room sessions and the admin roster"""
import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from .websocket_service import ConnectionManager, PushEvent, admin_manager, create_message, forum_manager

logger = logging.getLogger(__name__)

# close code sent to a socket superseded by a newer one with the same session
SESSION_REPLACED_CODE = 4001


@dataclass
class ConnectionRecord:
    connection_id: str
    session_id: str
    room_id: str
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PresenceRegistry:
    """
    Ordered connection records of the forum namespace.

    At most one record per session: a join for a known session evicts the
    previous connection (leaves its room and closes it) before registering.
    All mutations run under one lock so concurrent joins for a session
    always end with a single record.
    """

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self._records: list[ConnectionRecord] = []
        self._lock = asyncio.Lock()

    async def join(self, session_id: str, room_id: str, connection_id: str) -> ConnectionRecord | None:
        """Register a connection in a room; returns the evicted record, if any"""
        async with self._lock:
            evicted: ConnectionRecord | None = None
            kept: list[ConnectionRecord] = []
            for record in self._records:
                if record.session_id != session_id and record.connection_id != connection_id:
                    kept.append(record)
                    continue
                self.manager.leave_room(record.connection_id, record.room_id)
                if record.connection_id != connection_id:
                    evicted = record
                    await self.manager.close(record.connection_id, code=SESSION_REPLACED_CODE)
                    logger.warning(
                        "presence: session %s moved from connection %s (room %s) to %s",
                        session_id,
                        record.connection_id,
                        record.room_id,
                        connection_id,
                    )
            self._records = kept

            self._records.append(
                ConnectionRecord(connection_id=connection_id, session_id=session_id, room_id=room_id)
            )
            self.manager.join_room(connection_id, room_id)
            logger.debug("presence: %s joined room %s (session %s)", connection_id, room_id, session_id)
            return evicted

    async def disconnect(self, connection_id: str) -> ConnectionRecord | None:
        async with self._lock:
            record = next((r for r in self._records if r.connection_id == connection_id), None)
            if record is None:
                return None
            self._records = [r for r in self._records if r.connection_id != connection_id]
            self.manager.leave_room(connection_id, record.room_id)
            logger.debug("presence: %s left room %s", connection_id, record.room_id)
            return record

    async def lookup_session(self, session_id: str) -> ConnectionRecord | None:
        async with self._lock:
            return next((r for r in self._records if r.session_id == session_id), None)

    async def lookup_connection(self, connection_id: str) -> ConnectionRecord | None:
        async with self._lock:
            return next((r for r in self._records if r.connection_id == connection_id), None)

    def records(self) -> list[ConnectionRecord]:
        return list(self._records)


@dataclass
class RosterEntry:
    connection_id: str
    user_id: str
    user_type: str
    display_name: str
    full_name: str | None = None
    image_url: str | None = None
    student_id: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class AdminRoster:
    """Users currently connected, mirrored live to every admin socket"""

    # profile fields a user may change while connected
    UPDATABLE_FIELDS = ("user_type", "display_name", "full_name", "image_url", "student_id")

    def __init__(self, manager: ConnectionManager):
        self.manager = manager
        self._entries: list[RosterEntry] = []
        self._lock = asyncio.Lock()

    async def user_connected(self, entry: RosterEntry) -> None:
        async with self._lock:
            self._entries = [e for e in self._entries if e.connection_id != entry.connection_id]
            self._entries.append(entry)
        await self.manager.broadcast(create_message(PushEvent.USER_CONNECTED, entry.to_dict()))

    async def user_updated(self, user_id: str, **changes: str | None) -> int:
        """Apply profile changes to every connection of the user; returns how many entries changed"""
        unknown = set(changes) - set(self.UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"cannot update roster fields: {sorted(unknown)}")

        async with self._lock:
            updated = [e for e in self._entries if e.user_id == user_id]
            for entry in updated:
                for name, value in changes.items():
                    setattr(entry, name, value)
            payloads = [e.to_dict() for e in updated]

        for payload in payloads:
            await self.manager.broadcast(create_message(PushEvent.USER_UPDATED, payload))
        return len(payloads)

    async def user_disconnected(self, connection_id: str) -> RosterEntry | None:
        async with self._lock:
            entry = next((e for e in self._entries if e.connection_id == connection_id), None)
            if entry is None:
                return None
            self._entries = [e for e in self._entries if e.connection_id != connection_id]
        await self.manager.broadcast(
            create_message(PushEvent.USER_DISCONNECTED, {"connection_id": connection_id, "user_id": entry.user_id})
        )
        return entry

    def snapshot(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]

    async def admin_connected(self, connection_id: str) -> bool:
        """Hand a freshly connected admin the current roster"""
        return await self.manager.send_to(
            connection_id, create_message(PushEvent.ADMIN_CONNECTED, self.snapshot())
        )


presence_registry = PresenceRegistry(forum_manager)
admin_roster = AdminRoster(admin_manager)
