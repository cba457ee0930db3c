import pytest
from sqlalchemy import select

from campusboard.models.notification import Notification, NotificationKind
from campusboard.repositories.notifications import (
    NotificationFilterByForum,
    NotificationFilterByRecipient,
    NotificationTarget,
    notification_repository,
)
from campusboard.services.notification_service import (
    NotificationEvent,
    ReconcileAction,
    ReconcileMode,
    notification_link,
    notification_service,
)


def _like(actor, recipient, forum_id="f-1"):
    return NotificationEvent(NotificationKind.LIKE_FORUM, actor.id, recipient.id, NotificationTarget(forum_id=forum_id))


async def _all_notifications(db):
    result = await db.execute(select(Notification))
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_first_push_creates_record_with_single_actor(test_session, users):
    alice, bob = users["alice"], users["bob"]

    result = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    await test_session.commit()

    assert result.mode == ReconcileMode.CREATE
    rows = await _all_notifications(test_session)
    assert len(rows) == 1
    assert rows[0].recipient_id == alice.id
    assert rows[0].forum_id == "f-1"
    assert rows[0].comment_id is None
    assert await notification_repository.actors.members(test_session, rows[0].id) == [bob.id]


@pytest.mark.asyncio
async def test_pushes_on_same_key_aggregate_into_one_record(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]

    first = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    second = await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.PUSH)
    again = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    await test_session.commit()

    assert first.mode == ReconcileMode.CREATE
    assert second.mode == ReconcileMode.UPDATE
    assert again.mode == ReconcileMode.UPDATE
    assert first.notification_id == second.notification_id == again.notification_id

    rows = await _all_notifications(test_session)
    assert len(rows) == 1
    # a repeated actor is not duplicated
    assert await notification_repository.actors.members(test_session, rows[0].id) == [bob.id, carol.id]


@pytest.mark.asyncio
async def test_different_target_refs_are_different_records(test_session, users):
    alice, bob = users["alice"], users["bob"]
    on_comment = NotificationEvent(
        NotificationKind.LIKE_COMMENT, bob.id, alice.id, NotificationTarget(forum_id="f-1", comment_id="c-1")
    )
    on_reply = NotificationEvent(
        NotificationKind.LIKE_COMMENT,
        bob.id,
        alice.id,
        NotificationTarget(forum_id="f-1", comment_id="c-1", reply_comment_id="r-1"),
    )

    a = await notification_service.reconcile(test_session, on_comment, ReconcileAction.PUSH)
    b = await notification_service.reconcile(test_session, on_reply, ReconcileAction.PUSH)
    await test_session.commit()

    assert a.mode == ReconcileMode.CREATE
    assert b.mode == ReconcileMode.CREATE
    assert a.notification_id != b.notification_id


@pytest.mark.asyncio
async def test_self_action_is_invalid_and_writes_nothing(test_session, users):
    alice = users["alice"]

    result = await notification_service.reconcile(test_session, _like(alice, alice), ReconcileAction.PUSH)
    await test_session.commit()

    assert result.mode == ReconcileMode.INVALID
    assert result.changed is False
    assert await _all_notifications(test_session) == []


@pytest.mark.asyncio
async def test_pop_without_record_is_invalid(test_session, users):
    result = await notification_service.reconcile(
        test_session, _like(users["bob"], users["alice"]), ReconcileAction.POP
    )
    assert result.mode == ReconcileMode.INVALID


@pytest.mark.asyncio
async def test_pop_of_last_actor_deletes_record(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.PUSH)

    first = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.POP)
    assert first.mode == ReconcileMode.UPDATE
    rows = await _all_notifications(test_session)
    assert await notification_repository.actors.members(test_session, rows[0].id) == [carol.id]

    last = await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.POP)
    await test_session.commit()
    assert last.mode == ReconcileMode.DELETE
    assert await _all_notifications(test_session) == []


@pytest.mark.asyncio
async def test_unknown_action_raises(test_session, users):
    with pytest.raises(ValueError):
        await notification_service.reconcile(test_session, _like(users["bob"], users["alice"]), "toggle")


@pytest.mark.asyncio
async def test_read_state_follows_actor_and_reader_sets(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    created = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    await test_session.commit()
    assert await notification_service.count_unread(test_session, alice.id) == 1

    await notification_service.read(test_session, created.notification_id, alice.id)
    assert await notification_service.count_unread(test_session, alice.id) == 0

    # a new actor makes it unread again
    await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.PUSH)
    await test_session.commit()
    assert await notification_service.count_unread(test_session, alice.id) == 1

    # popping the unseen actor restores the read state
    await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.POP)
    await test_session.commit()
    assert await notification_service.count_unread(test_session, alice.id) == 0


@pytest.mark.asyncio
async def test_pop_also_removes_actor_from_readers(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    created = await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(carol, alice), ReconcileAction.PUSH)
    await test_session.commit()
    await notification_service.read(test_session, created.notification_id, alice.id)

    await notification_service.reconcile(test_session, _like(bob, alice), ReconcileAction.POP)
    await test_session.commit()

    readers = await notification_repository.readers.members(test_session, created.notification_id)
    assert readers == [carol.id]
    assert await notification_service.count_unread(test_session, alice.id) == 0


@pytest.mark.asyncio
async def test_fan_out_skips_actor_and_duplicates(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]

    results = await notification_service.fan_out(
        test_session,
        NotificationKind.NEW_ANNOUNCEMENT,
        alice.id,
        [bob.id, alice.id, carol.id, bob.id],
        NotificationTarget(announcement_id="a-1"),
    )
    await test_session.commit()

    assert [r for r, _ in results] == [bob.id, carol.id]
    assert all(res.mode == ReconcileMode.CREATE for _, res in results)


@pytest.mark.asyncio
async def test_remove_returns_affected_recipients(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    await notification_service.reconcile(test_session, _like(bob, alice, "f-1"), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(alice, carol, "f-1"), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(alice, bob, "f-2"), ReconcileAction.PUSH)
    await test_session.commit()

    recipients = await notification_service.remove(test_session, NotificationFilterByForum(("f-1",)))
    await test_session.commit()

    assert recipients == {alice.id, carol.id}
    remaining = await _all_notifications(test_session)
    assert [n.forum_id for n in remaining] == ["f-2"]


@pytest.mark.asyncio
async def test_retire_actor_pops_everywhere(test_session, users):
    alice, bob, carol = users["alice"], users["bob"], users["carol"]
    await notification_service.reconcile(test_session, _like(bob, alice, "f-1"), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(carol, alice, "f-1"), ReconcileAction.PUSH)
    await notification_service.reconcile(test_session, _like(bob, carol, "f-2"), ReconcileAction.PUSH)
    await test_session.commit()

    recipients = await notification_service.retire_actor(test_session, bob.id)
    await test_session.commit()

    assert recipients == {alice.id, carol.id}
    assert await notification_repository.count(test_session, *NotificationFilterByRecipient(carol.id).clauses()) == 0
    rows = await _all_notifications(test_session)
    assert len(rows) == 1
    assert await notification_repository.actors.members(test_session, rows[0].id) == [carol.id]


@pytest.mark.asyncio
async def test_publish_pushes_matching_event(push, users):
    from campusboard.services.notification_service import ReconcileResult

    ws = await push.listen_as(users["alice"].id)

    await notification_service.publish(users["alice"].id, ReconcileResult(ReconcileMode.CREATE, "n-1"), "push")
    await notification_service.publish(users["alice"].id, ReconcileResult(ReconcileMode.UPDATE, "n-1"), "pop")
    await notification_service.publish(users["alice"].id, ReconcileResult(ReconcileMode.DELETE, "n-1"), "pop")
    await notification_service.publish(users["alice"].id, ReconcileResult(ReconcileMode.INVALID), "pop")

    assert [m["event"] for m in ws.messages] == [
        "notificationCreated",
        "notificationUpdated",
        "notificationDeleted",
    ]
    assert ws.messages[1]["data"] == {"notification_id": "n-1", "action": "pop"}


def test_notification_link_prefers_most_specific_target():
    assert notification_link(NotificationTarget(follower_user_id="u-1")) == "/profile/u-1"
    assert notification_link(NotificationTarget(announcement_id="a-1")) == "/announcement/a-1"
    assert notification_link(NotificationTarget(forum_id="f-1")) == "/forum/f-1"
    assert (
        notification_link(NotificationTarget(forum_id="f-1", comment_id="c-1", reply_comment_id="r-1"))
        == "/forum/f-1?commentId=c-1&replyCommentId=r-1"
    )
