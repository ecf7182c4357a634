"""Moderation services: ban filtering, deletion and ban management."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Set

from retrolog.core.security import AuthorizationPolicy
from retrolog.core.settings import settings
from retrolog.db.time import now_ms
from retrolog.schemas.message import Message
from retrolog.schemas.moderation import BanRecord
from retrolog.services.errors import PermissionDeniedError
from retrolog.services.feed_sync import CollectionSubscriber, FeedSynchronizer
from retrolog.services.store import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)


def visible(messages: Iterable[Message], ban_set: Set[str]) -> list[Message]:
    """Return the messages whose sender is not banned, preserving order."""
    return [message for message in messages if message.sender_id not in ban_set]


class BanSetSubscription(CollectionSubscriber):
    """Live set of banned sender ids."""

    def __init__(self, store: DocumentStore, collection: str | None = None) -> None:
        super().__init__(store, collection or settings.bans_collection)
        self._ban_set: frozenset[str] = frozenset()

    @property
    def ban_set(self) -> frozenset[str]:
        return self._ban_set

    def _apply(self, documents: list[StoredDocument]) -> None:
        banned: set[str] = set()
        for document in documents:
            user_id = document.data.get("userId") or document.id
            banned.add(str(user_id))
        self._ban_set = frozenset(banned)
        logger.debug("Ban set replaced with %d senders", len(banned))


class ModerationService:
    """Service handling destructive moderation actions.

    Every action takes the caller's ``AuthorizationPolicy``; nothing here
    re-derives roles from emails or profiles.
    """

    def __init__(
        self,
        feed: FeedSynchronizer,
        store: DocumentStore,
        *,
        bans_collection: str | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._feed = feed
        self._store = store
        self._bans_collection = bans_collection or settings.bans_collection
        self._clock = clock

    async def delete_message(self, policy: AuthorizationPolicy, message: Message) -> None:
        """Hard-delete a message.

        Args:
            policy: Authorization policy of the caller.
            message: Message to remove.

        Raises:
            PermissionDeniedError: If the caller is neither an admin nor the sender.
            StoreError: If the store rejects the deletion.
        """
        if message.id is None:
            raise ValueError("Cannot delete a message without an id")
        if not policy.can_delete(message):
            raise PermissionDeniedError("Only admins or the sender may delete a message")

        await self._feed.delete(message.id)
        logger.info(
            "Message %s deleted by %s%s",
            message.id,
            policy.subject_id,
            " (admin)" if policy.is_admin else "",
        )

    async def block_sender(self, policy: AuthorizationPolicy, sender_id: str) -> BanRecord:
        """Ban a sender; their messages disappear from standard views.

        Banning the same sender twice rewrites the same record.
        """
        if not policy.can_ban():
            raise PermissionDeniedError("Only admins may block senders")

        record = BanRecord(user_id=sender_id, timestamp=self._clock())
        await self._store.set(
            self._bans_collection,
            sender_id,
            record.model_dump(by_alias=True),
        )
        logger.info("Sender %s blocked by %s", sender_id, policy.subject_id)
        return record

    async def unblock_sender(self, policy: AuthorizationPolicy, sender_id: str) -> None:
        """Remove a sender's ban record.

        Raises:
            PermissionDeniedError: If the caller is not an admin.
            DocumentNotFoundError: If the sender was not banned.
        """
        if not policy.can_ban():
            raise PermissionDeniedError("Only admins may unblock senders")

        await self._store.delete(self._bans_collection, sender_id)
        logger.info("Sender %s unblocked by %s", sender_id, policy.subject_id)
