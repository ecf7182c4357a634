"""Feed facade consumed by the presentation layer.

``FeedCore`` owns the process-wide pieces: one live subscription each to the
message and ban collections, the moderation service and per-client send
limiters. ``FeedService`` binds that core to one client session and exposes
the operations a UI needs: the moderated snapshot, ``send``, ``vote``,
``delete_message``, ``block_sender`` and the session's identity and cooldown.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from retrolog.core.settings import Settings, settings as default_settings
from retrolog.db.time import now_ms
from retrolog.schemas.feed import FeedItem, FeedOrder, FeedTab, TagCount
from retrolog.schemas.message import Message, MessageDraft
from retrolog.schemas.moderation import BanRecord
from retrolog.schemas.vote import VoteDirection
from retrolog.services.errors import MessageNotFoundError, RateLimitedError
from retrolog.services.feed_query import enrich, filter_by_tag, search, sort_messages
from retrolog.services.feed_sync import CollectionSubscriber, FeedSynchronizer
from retrolog.services.identity import DocumentProfileStore, Identity, SessionContext
from retrolog.services.moderation import BanSetSubscription, ModerationService, visible
from retrolog.services.rate_limit import RateLimiterRegistry
from retrolog.services.replies import MessageIndex, ReplyResolver, dialogs_for, has_unread
from retrolog.services.sequence import next_sequence
from retrolog.services.store import DocumentStore
from retrolog.services.tags import normalize_tags, popular_tags
from retrolog.services.votes import toggle_vote, vote_patch

logger = logging.getLogger(__name__)


class FeedCore:
    """Process-wide feed state shared by every client session."""

    def __init__(self, store: DocumentStore, config: Settings | None = None) -> None:
        config = config or default_settings
        self.store = store
        self.settings = config
        self.feed = FeedSynchronizer(store, config.messages_collection)
        self.bans = BanSetSubscription(store, config.bans_collection)
        self.moderation = ModerationService(
            self.feed,
            store,
            bans_collection=config.bans_collection,
        )
        self.profiles = DocumentProfileStore(store, config.users_collection)
        self.limiters = RateLimiterRegistry(config.send_cooldown_seconds)

    async def start(self) -> None:
        """Subscribe to the message and ban collections."""
        await self.feed.start()
        await self.bans.start()
        logger.info("Feed core started")

    async def stop(self) -> None:
        """Unsubscribe both live subscriptions."""
        await self.feed.stop()
        await self.bans.stop()
        logger.info("Feed core stopped")

    def visible_messages(self) -> list[Message]:
        """The moderated, ordered snapshot."""
        return visible(self.feed.snapshot, self.bans.ban_set)


class FeedService:
    """Session-bound operations over a ``FeedCore``."""

    def __init__(
        self,
        core: FeedCore,
        session: SessionContext,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._core = core
        self._session = session
        self._clock = clock

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def messages(self) -> list[Message]:
        return self._core.visible_messages()

    @property
    def cooldown_remaining(self) -> int:
        return self._session.rate_limiter.remaining_seconds()

    async def identity(self) -> Identity:
        return await self._session.identity.current_identity()

    async def _settle(self, subscriber: CollectionSubscriber, predicate: Callable[[], bool]) -> None:
        # Wait for the authoritative snapshot instead of rendering optimistically.
        timeout = self._core.settings.snapshot_settle_seconds
        if not subscriber.running or timeout <= 0:
            return
        if not await subscriber.wait_for(predicate, timeout):
            logger.debug("Snapshot for %s did not settle within %.1fs", subscriber.collection, timeout)

    def _visible_or_none(self, message_id: str) -> Message | None:
        message = self._core.feed.get(message_id)
        if message is None or message.sender_id in self._core.bans.ban_set:
            return None
        return message

    def _visible_message(self, message_id: str) -> Message:
        message = self._visible_or_none(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    # -- reads --------------------------------------------------------------------

    async def feed(
        self,
        *,
        query: str | None = None,
        tag: str | None = None,
        order: FeedOrder = FeedOrder.NEWEST,
        tab: FeedTab = FeedTab.ALL,
    ) -> list[FeedItem]:
        """Return the moderated feed filtered, sorted and enriched for display."""
        identity = await self.identity()
        messages = self.messages
        resolver = ReplyResolver.from_snapshot(messages)

        if tab is FeedTab.MINE:
            messages = dialogs_for(identity.id, messages)
            self._session.mark_read(self._clock())

        messages = sort_messages(filter_by_tag(search(messages, query), tag), order)
        return enrich(messages, resolver, identity.id)

    async def item(self, message_id: str) -> FeedItem:
        """Return one visible message enriched for display.

        Raises:
            MessageNotFoundError: If the message is absent or its sender is banned.
        """
        identity = await self.identity()
        message = self._visible_message(message_id)
        parent = self._visible_or_none(message.parent_id) if message.parent_id else None
        resolver = ReplyResolver(MessageIndex([parent] if parent is not None else []))
        return enrich([message], resolver, identity.id)[0]

    def popular_tags(self) -> list[TagCount]:
        return popular_tags(self.messages)

    async def has_unread(self) -> bool:
        """Whether someone replied in the caller's dialogs since they last looked."""
        identity = await self.identity()
        last_read = self._session.last_read_at()
        if last_read is None:
            self._session.mark_read(self._clock())
            return False
        return has_unread(identity.id, self.messages, last_read)

    # -- writes -------------------------------------------------------------------

    async def send(
        self,
        content: str,
        title: str | None = None,
        parent_id: str | None = None,
        manual_tags: Iterable[str] | None = None,
    ) -> Message:
        """Post a new message.

        Returns:
            The message as written, including its store-assigned id.

        Raises:
            pydantic.ValidationError: If the content or title is invalid.
            RateLimitedError: If the caller is still cooling down.
            StoreError: If the store rejects the write.
        """
        draft = MessageDraft(
            content=content,
            title=title,
            parent_id=parent_id,
            manual_tags=list(manual_tags or []),
        )
        identity = await self.identity()

        limiter = self._session.rate_limiter
        if not limiter.try_consume():
            raise RateLimitedError(limiter.remaining_seconds())

        message = Message(
            title=draft.title,
            content=draft.content,
            timestamp=self._clock(),
            sequence_number=next_sequence(self._core.feed.snapshot),
            sender_id=identity.id,
            sender_name=identity.display_name,
            sender_avatar=identity.avatar,
            parent_id=draft.parent_id,
            tags=normalize_tags(draft.content, draft.manual_tags),
            is_admin=identity.is_admin,
        )

        try:
            message_id = await self._core.feed.append(message)
        except Exception:
            limiter.refund()
            raise

        feed = self._core.feed
        await self._settle(feed, lambda: feed.get(message_id) is not None)
        return message.model_copy(update={"id": message_id})

    async def vote(self, message_id: str, direction: VoteDirection) -> dict[str, int]:
        """Toggle the caller's vote on a message and return the resulting votes."""
        identity = await self.identity()
        message = self._visible_message(message_id)

        expected = toggle_vote(message.votes, identity.id, direction)
        await self._core.feed.update_votes(
            message_id,
            vote_patch(message.votes, identity.id, direction),
        )

        feed = self._core.feed

        def _applied() -> bool:
            current = feed.get(message_id)
            return current is None or current.votes.get(identity.id) == expected.get(identity.id)

        await self._settle(feed, _applied)
        current = feed.get(message_id)
        if current is not None and _applied():
            return dict(current.votes)
        return expected

    async def delete_message(self, message_id: str) -> None:
        """Delete a message as its sender or as an admin."""
        identity = await self.identity()
        message = self._core.feed.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)

        await self._core.moderation.delete_message(identity.policy, message)
        feed = self._core.feed
        await self._settle(feed, lambda: feed.get(message_id) is None)

    async def block_sender(self, sender_id: str) -> BanRecord:
        """Ban a sender (admin only)."""
        identity = await self.identity()
        record = await self._core.moderation.block_sender(identity.policy, sender_id)
        bans = self._core.bans
        await self._settle(bans, lambda: sender_id in bans.ban_set)
        return record

    async def unblock_sender(self, sender_id: str) -> None:
        """Lift a sender's ban (admin only)."""
        identity = await self.identity()
        await self._core.moderation.unblock_sender(identity.policy, sender_id)
        bans = self._core.bans
        await self._settle(bans, lambda: sender_id not in bans.ban_set)
