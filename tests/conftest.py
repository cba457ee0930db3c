"""Pytest configuration"""
import inspect
import json
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from campusboard.database import Base, enable_sqlite_savepoints, get_db, import_models
from campusboard.main import app
from campusboard.models.user import User, UserType
from campusboard.services import presence_service, websocket_service
from campusboard.services.websocket_service import ConnectionManager
from campusboard.utils.security import create_access_token

# in-memory database per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    import_models()
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    transport_kwargs: dict[str, Any] = {"app": app}
    if "lifespan" in inspect.signature(ASGITransport.__init__).parameters:
        transport_kwargs["lifespan"] = "off"
    transport = ASGITransport(**transport_kwargs)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class DummyWebSocket:
    """Stands in for a starlette WebSocket on the connection managers"""

    def __init__(self, *, fail_send_text: bool = False, headers: dict[str, str] | None = None) -> None:
        self.accepted = False
        self.closed_with: int | None = None
        self.sent_text: list[str] = []
        self.fail_send_text = bool(fail_send_text)
        self.headers = headers or {}

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail_send_text:
            raise RuntimeError("send_text_failed")
        self.sent_text.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(t) for t in self.sent_text]

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [m for m in self.messages if name is None or m["event"] == name]


class PushRecorder:
    """Fresh connection managers wired into every module that pushes"""

    def __init__(self) -> None:
        self.forum = ConnectionManager("forum")
        self.notification = ConnectionManager("notification")
        self.admin = ConnectionManager("admin")
        self.user_sockets: dict[str, DummyWebSocket] = {}

    async def listen_as(self, user_id: str) -> DummyWebSocket:
        """Open a notification socket for the user"""
        ws = DummyWebSocket()
        cid = await self.notification.connect(ws)
        self.notification.join_room(cid, user_id)
        self.user_sockets[user_id] = ws
        return ws

    async def watch_room(self, room_id: str) -> DummyWebSocket:
        ws = DummyWebSocket()
        cid = await self.forum.connect(ws)
        self.forum.join_room(cid, room_id)
        return ws


@pytest.fixture
def push(monkeypatch) -> PushRecorder:
    recorder = PushRecorder()

    # the channel object is shared by every service module
    shared = websocket_service.push_channel
    monkeypatch.setattr(shared, "forum", recorder.forum)
    monkeypatch.setattr(shared, "notification", recorder.notification)
    monkeypatch.setattr(presence_service.admin_roster, "manager", recorder.admin)
    monkeypatch.setattr(presence_service.admin_roster, "_entries", [])
    monkeypatch.setattr(presence_service.presence_registry, "manager", recorder.forum)
    monkeypatch.setattr(presence_service.presence_registry, "_records", [])
    return recorder


@pytest.fixture
def tmp_storage(monkeypatch, tmp_path):
    """Local storage rooted in a temp dir"""
    from campusboard.services import comment_service, notification_service, storage_service

    provider = storage_service.LocalStorageProvider(base_dir=str(tmp_path), api_prefix="/api/upload")
    monkeypatch.setattr(storage_service, "get_storage_provider", lambda: provider)
    monkeypatch.setattr(notification_service, "get_storage_provider", lambda: provider)
    monkeypatch.setattr(comment_service, "get_storage_provider", lambda: provider)
    return provider


def auth_headers(user: User, session_id: str | None = None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    if session_id:
        headers["X-Session-Id"] = session_id
    return headers


async def make_user(
    db: AsyncSession,
    name: str,
    user_type: str = UserType.STUDENT,
    **fields: Any,
) -> User:
    user = User(
        display_name=name,
        email=f"{name}@campus.test",
        user_type=user_type,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def users(test_session: AsyncSession) -> dict[str, User]:
    """alice, bob, carol and dave are members; root is an admin"""
    created = {}
    for name in ("alice", "bob", "carol", "dave"):
        created[name] = await make_user(test_session, name)
    created["root"] = await make_user(test_session, "root", UserType.ADMIN)
    return created
