import pytest
import pytest_asyncio

from campusboard.models.notification import NotificationKind
from campusboard.services.user_service import user_service

from conftest import auth_headers


@pytest_asyncio.fixture
async def followed(test_session, users):
    """bob and carol follow alice"""
    await user_service.follow(test_session, users["bob"], users["alice"].id, True)
    await user_service.follow(test_session, users["carol"], users["alice"].id, True)
    return users


@pytest.mark.asyncio
async def test_list_and_unread_count(client, followed, tmp_storage):
    alice = followed["alice"]

    resp = await client.get("/api/notifications", headers=auth_headers(alice))
    assert resp.status_code == 200
    data = resp.json()
    # follower notifications are keyed by the follower, so two records
    assert data["total"] == 2
    assert {item["action_kind"] for item in data["items"]} == {NotificationKind.NEW_FOLLOWER}
    assert all(item["is_read"] is False for item in data["items"])

    resp = await client.get("/api/notifications/unread-count", headers=auth_headers(alice))
    assert resp.json() == {"count": 2}

    resp = await client.get("/api/notifications", params={"page_size": 1, "page": 2}, headers=auth_headers(alice))
    assert resp.json()["total"] == 2
    assert len(resp.json()["items"]) == 1

    resp = await client.get("/api/notifications", params={"is_read": "bogus"}, headers=auth_headers(alice))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_read_one_and_all(client, followed, push, tmp_storage):
    alice = followed["alice"]
    ws = await push.listen_as(alice.id)
    items = (await client.get("/api/notifications", headers=auth_headers(alice))).json()["items"]

    resp = await client.put(f"/api/notifications/{items[0]['id']}/read", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert (await client.get("/api/notifications/unread-count", headers=auth_headers(alice))).json() == {"count": 1}

    resp = await client.get(f"/api/notifications/{items[0]['id']}", headers=auth_headers(alice))
    assert resp.json()["is_read"] is True

    await client.put("/api/notifications/read-all", headers=auth_headers(alice))
    resp = await client.get("/api/notifications", params={"is_read": "unread"}, headers=auth_headers(alice))
    assert resp.json()["total"] == 0

    read_events = ws.events("notificationRead")
    assert [e["data"]["notification_id"] for e in read_events] == [items[0]["id"], None]


@pytest.mark.asyncio
async def test_other_users_notification_is_not_found(client, followed, tmp_storage):
    alice, bob = followed["alice"], followed["bob"]
    item = (await client.get("/api/notifications", headers=auth_headers(alice))).json()["items"][0]

    for method, path in (
        ("GET", f"/api/notifications/{item['id']}"),
        ("PUT", f"/api/notifications/{item['id']}/read"),
        ("DELETE", f"/api/notifications/{item['id']}"),
    ):
        resp = await client.request(method, path, headers=auth_headers(bob))
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Notification not found"}


@pytest.mark.asyncio
async def test_delete_notification(client, followed, tmp_storage):
    alice = followed["alice"]
    item = (await client.get("/api/notifications", headers=auth_headers(alice))).json()["items"][0]

    resp = await client.delete(f"/api/notifications/{item['id']}", headers=auth_headers(alice))
    assert resp.json() == {"message": "Deleted"}

    resp = await client.get("/api/notifications", headers=auth_headers(alice))
    assert resp.json()["total"] == 1
