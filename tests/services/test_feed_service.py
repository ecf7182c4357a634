# mypy: ignore-errors
# tests/services/test_feed_service.py
"""End-to-end tests of the feed facade over an in-memory store."""

import pytest
from pydantic import ValidationError

from retrolog.schemas.feed import FeedOrder, FeedTab
from retrolog.schemas.user import Principal
from retrolog.schemas.vote import VoteDirection
from retrolog.services.errors import (
    MessageNotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    StoreError,
)


@pytest.mark.asyncio
async def test_first_post_gets_sequence_one_and_extracted_tags(make_service) -> None:
    feed = make_service(anon_id="anon-a")

    message = await feed.send("Hello #world")

    assert message.tags == ["#world"]
    assert message.sequence_number == 1
    assert message.sender_id == "anon-a"
    assert message.id is not None
    assert [m.id for m in feed.messages] == [message.id]


@pytest.mark.asyncio
async def test_post_after_five_messages_gets_sequence_six(make_service, seed_message, make_message) -> None:
    for n in range(1, 6):
        seed_message(make_message(n))
    feed = make_service()

    message = await feed.send("next one")
    assert message.sequence_number == 6


@pytest.mark.asyncio
async def test_banning_hides_messages_without_deleting(
    core, make_service, seed_message, make_message, admin_principal, memory_store, core_settings
) -> None:
    seed_message(make_message(1, "sender-a"))
    seed_message(make_message(2, "sender-a"))
    seed_message(make_message(3, "sender-b"))
    viewer = make_service()
    admin = make_service(admin_principal)

    assert sum(m.sender_id == "sender-a" for m in viewer.messages) == 2
    await admin.block_sender("sender-a")

    assert sum(m.sender_id == "sender-a" for m in viewer.messages) == 0
    assert [m.id for m in viewer.messages] == ["m3"]
    assert len(memory_store.collections[core_settings.messages_collection]) == 3
    assert len(core.feed.snapshot) == 3

    await admin.unblock_sender("sender-a")
    assert len(viewer.messages) == 3


@pytest.mark.asyncio
async def test_repeated_upvote_removes_vote(make_service, seed_message, make_message) -> None:
    seed_message(make_message(1, "author", votes={"u1": 1}))
    voter = make_service(anon_id="u1")
    assert (await voter.feed())[0].score == 1

    votes = await voter.vote("m1", VoteDirection.UP)

    assert votes == {}
    assert (await voter.feed())[0].score == 0


@pytest.mark.asyncio
async def test_votes_from_different_voters_accumulate(make_service, seed_message, make_message) -> None:
    seed_message(make_message(1, "author"))
    await make_service(anon_id="u1").vote("m1", VoteDirection.UP)
    votes = await make_service(anon_id="u2").vote("m1", VoteDirection.DOWN)
    assert votes == {"u1": 1, "u2": -1}


@pytest.mark.asyncio
async def test_voting_on_unknown_or_banned_message_fails(
    make_service, seed_message, make_message, admin_principal
) -> None:
    seed_message(make_message(1, "spammer"))
    await make_service(admin_principal).block_sender("spammer")
    voter = make_service()

    with pytest.raises(MessageNotFoundError):
        await voter.vote("missing", VoteDirection.UP)
    with pytest.raises(MessageNotFoundError):
        await voter.vote("m1", VoteDirection.UP)


@pytest.mark.asyncio
async def test_second_send_within_cooldown_is_rate_limited(make_service) -> None:
    ticks = iter([0.0, 5.0, 5.0, 20.0])
    feed = make_service(limiter_clock=lambda: next(ticks))

    await feed.send("first")
    with pytest.raises(RateLimitedError) as excinfo:
        await feed.send("second")
    assert excinfo.value.retry_after == 10

    await feed.send("third")
    assert len(feed.messages) == 2


@pytest.mark.asyncio
async def test_failed_write_refunds_cooldown(make_service, memory_store) -> None:
    feed = make_service()
    memory_store.fail_writes = StoreError("permission denied")

    with pytest.raises(StoreError):
        await feed.send("will fail")
    assert feed.cooldown_remaining == 0

    memory_store.fail_writes = None
    await feed.send("retry")
    assert feed.cooldown_remaining > 0


@pytest.mark.asyncio
async def test_blank_content_is_rejected_before_rate_limiting(make_service) -> None:
    feed = make_service()
    with pytest.raises(ValidationError):
        await feed.send("   ")
    assert feed.cooldown_remaining == 0
    assert feed.messages == []


@pytest.mark.asyncio
async def test_send_stamps_identity_fields_and_manual_tags(make_service) -> None:
    feed = make_service(Principal(uid="uid-1", display_name="Jane", photo_url="http://p"))
    message = await feed.send("  body #One ", title="  ", manual_tags=["two, #ONE"])

    assert message.content == "body #One"
    assert message.title is None
    assert message.tags == ["#one", "#two"]
    assert message.sender_name == "Jane"
    assert message.sender_avatar == "http://p"
    assert message.is_admin is False


@pytest.mark.asyncio
async def test_reply_shows_parent_context(make_service, clock) -> None:
    alice = make_service(anon_id="alice")
    bob = make_service(anon_id="bob")
    parent = await alice.send("question?")
    clock.advance(1)
    await bob.send("answer", parent_id=parent.id)

    items = await alice.feed(order=FeedOrder.OLDEST)
    assert items[0].parent is None
    assert items[1].parent.sequence_number == parent.sequence_number
    assert items[1].parent.sender_id == "alice"
    assert items[0].is_own and not items[1].is_own


@pytest.mark.asyncio
async def test_reply_to_deleted_parent_has_empty_context(make_service) -> None:
    alice = make_service(anon_id="alice")
    bob = make_service(anon_id="bob")
    parent = await alice.send("soon gone")
    reply = await bob.send("reply", parent_id=parent.id)

    await alice.delete_message(parent.id)

    items = await bob.feed()
    assert [item.message.id for item in items] == [reply.id]
    assert items[0].parent is not None
    assert not items[0].parent.resolved


@pytest.mark.asyncio
async def test_delete_by_stranger_is_denied(make_service) -> None:
    message = await make_service(anon_id="alice").send("mine")
    with pytest.raises(PermissionDeniedError):
        await make_service(anon_id="mallory").delete_message(message.id)
    with pytest.raises(MessageNotFoundError):
        await make_service(anon_id="alice").delete_message("nope")


@pytest.mark.asyncio
async def test_feed_filters_by_query_and_tag(make_service) -> None:
    feed = make_service()
    await feed.send("cats are great #pets")
    await make_service().send("dogs too #pets")
    await make_service().send("weather report #news")

    assert len(await feed.feed(tag="pets")) == 2
    assert [i.message.content for i in await feed.feed(query="dogs")] == ["dogs too #pets"]
    assert [(t.tag, t.count) for t in feed.popular_tags()] == [("#pets", 2), ("#news", 1)]


@pytest.mark.asyncio
async def test_dialogs_tab_and_unread_marker(make_service, clock) -> None:
    alice = make_service(anon_id="alice")
    bob = make_service(anon_id="bob")

    assert await alice.has_unread() is False
    clock.advance(1_000)
    own = await alice.send("anyone?")
    await make_service(anon_id="carol").send("unrelated")
    clock.advance(1_000)
    await bob.send("yes", parent_id=own.id)

    assert await alice.has_unread() is True
    mine = await alice.feed(tab=FeedTab.MINE)
    assert [item.message.content for item in mine] == ["yes", "anyone?"]
    assert await alice.has_unread() is False


@pytest.mark.asyncio
async def test_item_returns_one_message_with_parent_context(
    make_service, seed_message, make_message, admin_principal
) -> None:
    seed_message(make_message(1, "alice", content="question?"))
    seed_message(make_message(2, "bob", parent_id="m1"))
    seed_message(make_message(3, "spammer"))
    seed_message(make_message(4, "bob", parent_id="m3"))
    await make_service(admin_principal).block_sender("spammer")
    viewer = make_service(anon_id="bob")

    item = await viewer.item("m2")
    assert item.message.id == "m2"
    assert item.is_own
    assert item.parent.resolved
    assert item.parent.sender_id == "alice"

    assert (await viewer.item("m1")).parent is None
    assert not (await viewer.item("m4")).parent.resolved
    with pytest.raises(MessageNotFoundError):
        await viewer.item("m3")
    with pytest.raises(MessageNotFoundError):
        await viewer.item("missing")
