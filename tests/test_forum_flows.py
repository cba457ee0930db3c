import pytest

from campusboard.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from campusboard.models.notification import NotificationKind
from campusboard.repositories import forum_categories, notify_subscribers
from campusboard.repositories.notifications import NotificationFilterByRecipient, notification_repository
from campusboard.schemas.forum import CommentCreate, ForumCreate, ForumUpdate
from campusboard.services.comment_service import comment_service
from campusboard.services.forum_service import forum_service
from campusboard.services.user_service import user_service

from conftest import auth_headers


async def _notifications_of(db, user):
    return await notification_repository.find_many(db, *NotificationFilterByRecipient(user.id).clauses())


@pytest.mark.asyncio
async def test_forum_like_notifies_author_and_pushes(test_session, users, push):
    alice, bob = users["alice"], users["bob"]
    ws = await push.listen_as(alice.id)
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))

    active, count = await forum_service.like_forum(test_session, forum.id, bob, True)
    assert (active, count) == (True, 1)

    rows = await _notifications_of(test_session, alice)
    assert len(rows) == 1
    assert rows[0].action_kind == NotificationKind.LIKE_FORUM
    assert ws.events("notificationCreated")[0]["data"]["notification_id"] == rows[0].id

    # liking twice changes nothing
    await forum_service.like_forum(test_session, forum.id, bob, True)
    assert len(ws.events()) == 1

    active, count = await forum_service.like_forum(test_session, forum.id, bob, False)
    assert (active, count) == (False, 0)
    assert await _notifications_of(test_session, alice) == []
    assert ws.events()[-1]["event"] == "notificationDeleted"


@pytest.mark.asyncio
async def test_admin_cannot_like(test_session, users):
    forum = await forum_service.create_forum(test_session, users["alice"], ForumCreate(title="t", description="d"))
    with pytest.raises(PermissionDeniedError):
        await forum_service.like_forum(test_session, forum.id, users["root"], True)


@pytest.mark.asyncio
async def test_new_forum_reaches_subscribers(test_session, users, push):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    await user_service.subscribe(test_session, bob, alice.id, True)
    await user_service.subscribe(test_session, carol, alice.id, True)
    assert await notify_subscribers.members(test_session, alice.id) == [bob.id, carol.id]

    bob_ws = await push.listen_as(bob.id)
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))

    for user in (bob, carol):
        rows = await _notifications_of(test_session, user)
        assert [(r.action_kind, r.forum_id) for r in rows] == [(NotificationKind.NEW_FORUM, forum.id)]
    assert len(bob_ws.events("notificationCreated")) == 1


@pytest.mark.asyncio
async def test_subscribe_to_self_is_rejected(test_session, users):
    with pytest.raises(ValidationError):
        await user_service.subscribe(test_session, users["alice"], users["alice"].id, True)


@pytest.mark.asyncio
async def test_comments_and_replies_aggregate_per_target(test_session, users):
    alice, bob, carol, dave = users["alice"], users["bob"], users["carol"], users["dave"]
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))

    top = await comment_service.create_comment(test_session, bob, CommentCreate(forum_id=forum.id, text="hi"))
    await comment_service.create_comment(test_session, carol, CommentCreate(forum_id=forum.id, text="me too"))
    reply = await comment_service.create_comment(
        test_session, dave, CommentCreate(forum_id=forum.id, parent_id=top.id, text="agreed")
    )
    # replying to a reply lands on the top-level comment
    nested = await comment_service.create_comment(
        test_session, carol, CommentCreate(forum_id=forum.id, parent_id=reply.id, text="+1")
    )
    assert nested.parent_id == top.id

    alice_rows = await _notifications_of(test_session, alice)
    assert len(alice_rows) == 1
    assert alice_rows[0].action_kind == NotificationKind.NEW_COMMENT
    assert await notification_repository.actors.members(test_session, alice_rows[0].id) == [bob.id, carol.id]

    bob_rows = await _notifications_of(test_session, bob)
    assert len(bob_rows) == 1
    assert bob_rows[0].action_kind == NotificationKind.NEW_REPLY
    assert bob_rows[0].comment_id == top.id
    assert await notification_repository.actors.members(test_session, bob_rows[0].id) == [dave.id, carol.id]


@pytest.mark.asyncio
async def test_comment_on_unknown_forum_is_not_found(test_session, users):
    with pytest.raises(NotFoundError):
        await comment_service.create_comment(test_session, users["bob"], CommentCreate(forum_id="nope", text="x"))


@pytest.mark.asyncio
async def test_comment_room_events_carry_session_id(test_session, users, push):
    forum = await forum_service.create_forum(test_session, users["alice"], ForumCreate(title="t", description="d"))
    room = await push.watch_room(forum.id)

    comment = await comment_service.create_comment(
        test_session, users["bob"], CommentCreate(forum_id=forum.id, text="hi"), session_id="tab-1"
    )

    event = room.events("commentCreated")[0]
    assert event["data"] == {"comment_id": comment.id, "reply_comment_id": None, "sessionId": "tab-1"}


@pytest.mark.asyncio
async def test_comment_like_on_reply_targets_reply(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))
    top = await comment_service.create_comment(test_session, bob, CommentCreate(forum_id=forum.id, text="hi"))
    reply = await comment_service.create_comment(
        test_session, carol, CommentCreate(forum_id=forum.id, parent_id=top.id, text="yo")
    )

    await comment_service.like_comment(test_session, reply.id, alice, True)

    rows = [r for r in await _notifications_of(test_session, carol) if r.action_kind == NotificationKind.LIKE_COMMENT]
    assert len(rows) == 1
    assert (rows[0].forum_id, rows[0].comment_id, rows[0].reply_comment_id) == (forum.id, top.id, reply.id)


@pytest.mark.asyncio
async def test_follow_and_unfollow(test_session, users, push):
    alice, bob = users["alice"], users["bob"]
    ws = await push.listen_as(alice.id)

    assert await user_service.follow(test_session, bob, alice.id, True) == (True, 1)
    rows = await _notifications_of(test_session, alice)
    assert [(r.action_kind, r.follower_user_id) for r in rows] == [(NotificationKind.NEW_FOLLOWER, bob.id)]

    assert await user_service.follow(test_session, bob, alice.id, False) == (False, 0)
    assert await _notifications_of(test_session, alice) == []
    assert [m["event"] for m in ws.messages] == ["notificationCreated", "notificationDeleted"]

    with pytest.raises(ValidationError):
        await user_service.follow(test_session, bob, bob.id, True)


@pytest.mark.asyncio
async def test_update_forum_owner_only_and_replaces_categories(test_session, users, push):
    alice, bob = users["alice"], users["bob"]
    news = await forum_service.create_category(test_session, "news")
    sport = await forum_service.create_category(test_session, "sport")
    forum = await forum_service.create_forum(
        test_session, alice, ForumCreate(title="t", description="d", category_ids=[news.id])
    )
    room = await push.watch_room(forum.id)

    with pytest.raises(PermissionDeniedError):
        await forum_service.update_forum(test_session, forum.id, bob, ForumUpdate(title="x"))

    await forum_service.update_forum(
        test_session, forum.id, alice, ForumUpdate(title="new", category_ids=[sport.id]), session_id="tab"
    )
    assert forum.title == "new"
    assert await forum_categories.members(test_session, forum.id) == [sport.id]
    assert room.events("forumUpdated")[0]["data"] == {"forum_id": forum.id, "sessionId": "tab"}


@pytest.mark.asyncio
async def test_forum_routes(client, test_session, users, push):
    alice, bob = users["alice"], users["bob"]

    resp = await client.post(
        "/api/forum/forums", json={"title": "Hello", "description": "world"}, headers=auth_headers(alice)
    )
    assert resp.status_code == 200
    forum_id = resp.json()["id"]

    resp = await client.post(
        f"/api/forum/forums/{forum_id}/like", json={"is_like": True}, headers=auth_headers(bob)
    )
    assert resp.json() == {"active": True, "count": 1}

    resp = await client.post(
        "/api/forum/comments", json={"forum_id": forum_id, "text": "nice"}, headers=auth_headers(bob)
    )
    assert resp.status_code == 200
    assert resp.json()["parent_id"] is None

    resp = await client.get(f"/api/forum/forums/{forum_id}", headers=auth_headers(bob))
    assert resp.json()["like_count"] == 1

    resp = await client.get("/api/forum/forums/missing", headers=auth_headers(bob))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Forum not found"}

    resp = await client.post("/api/forum/forums", json={"title": "x", "description": "y"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_comment_listing_nests_replies_and_masks_anonymous_authors(test_session, users, tmp_storage):
    alice, bob, carol, dave = users["alice"], users["bob"], users["carol"], users["dave"]
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))
    hidden = await comment_service.create_comment(
        test_session, bob, CommentCreate(forum_id=forum.id, text="a", is_anonymous=True)
    )
    open_reply = await comment_service.create_comment(
        test_session, carol, CommentCreate(forum_id=forum.id, parent_id=hidden.id, text="b")
    )
    hidden_reply = await comment_service.create_comment(
        test_session, dave, CommentCreate(forum_id=forum.id, parent_id=hidden.id, text="c", is_anonymous=True)
    )
    plain = await comment_service.create_comment(
        test_session, carol, CommentCreate(forum_id=forum.id, text="d", image_refs=["comment/p.png"])
    )
    await comment_service.like_comment(test_session, plain.id, alice, True)

    total, views = await comment_service.list_comments(test_session, forum.id, bob.id)

    assert total == 2
    assert [v.id for v in views] == [hidden.id, plain.id]
    own = views[0]
    assert (own.author_id, own.author_name) == (bob.id, "anonymous user (you)")
    assert own.author_image_url.endswith("/user/anonymous-avatar.png")
    assert [r.id for r in own.replies] == [open_reply.id, hidden_reply.id]
    assert (own.replies[0].author_id, own.replies[0].author_name) == (carol.id, "carol")
    assert (own.replies[1].author_id, own.replies[1].author_name) == ("unknown", "anonymous user")

    assert views[1].replies == []
    assert views[1].image_urls == ["/api/upload/comment/p.png"]
    assert (views[1].like_count, views[1].is_liked) == (1, False)

    # dave sees bob masked and the like is not his
    _, as_dave = await comment_service.list_comments(test_session, forum.id, dave.id)
    assert (as_dave[0].author_id, as_dave[0].author_name) == ("unknown", "anonymous user")
    assert as_dave[0].replies[1].author_name == "anonymous user (you)"

    _, as_alice = await comment_service.list_comments(test_session, forum.id, alice.id)
    assert as_alice[1].is_liked is True

    total, paged = await comment_service.list_comments(test_session, forum.id, bob.id, offset=1, limit=1)
    assert total == 2
    assert [v.id for v in paged] == [plain.id]

    with pytest.raises(NotFoundError):
        await comment_service.list_comments(test_session, "missing", bob.id)


@pytest.mark.asyncio
async def test_comment_and_category_listing_routes(client, test_session, users, push, tmp_storage):
    alice, bob = users["alice"], users["bob"]
    forum = await forum_service.create_forum(test_session, alice, ForumCreate(title="t", description="d"))
    top = await comment_service.create_comment(test_session, bob, CommentCreate(forum_id=forum.id, text="x"))
    await comment_service.create_comment(
        test_session, alice, CommentCreate(forum_id=forum.id, parent_id=top.id, text="y")
    )
    await forum_service.create_category(test_session, "events", "#ff0000")
    await forum_service.create_category(test_session, "clubs")

    resp = await client.get(
        f"/api/forum/forums/{forum.id}/comments", params={"page": 1, "page_size": 5}, headers=auth_headers(alice)
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["items"][0]["author_name"] == "bob"
    assert [r["author_name"] for r in body["items"][0]["replies"]] == ["alice"]

    resp = await client.get("/api/forum/forums/missing/comments", headers=auth_headers(alice))
    assert resp.status_code == 404

    resp = await client.get("/api/forum/categories", headers=auth_headers(bob))
    assert resp.status_code == 200
    assert [(c["name"], c["hex_color"]) for c in resp.json()] == [("events", "#ff0000"), ("clubs", "#000000")]

    resp = await client.get("/api/forum/categories")
    assert resp.status_code == 401
