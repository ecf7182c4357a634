"""Live synchronization of the shared message collection.

This module provides the FeedSynchronizer, which keeps an ordered in-memory
snapshot of the remote message collection and exposes the write path
(append, vote update, delete) to the rest of the core.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from retrolog.core.settings import settings
from retrolog.schemas.message import Message
from retrolog.services.replies import MessageIndex
from retrolog.services.store import DocumentStore, FieldPath, StoredDocument, Subscription

# Configure logger for this module
logger = logging.getLogger(__name__)


class CollectionSubscriber:
    """Holds one live subscription and replaces its state on every snapshot.

    Subclasses implement ``_apply`` to turn the raw documents into their own
    state. Notifications run to completion one at a time on the event loop.
    """

    order_by: str | None = None
    descending: bool = False

    def __init__(self, store: DocumentStore, collection: str) -> None:
        self.store = store
        self.collection = collection
        self._subscription: Subscription | None = None
        self._listeners: list[Callable[[], None]] = []
        self._loaded = asyncio.Event()
        self._changed = asyncio.Event()
        self._last_error: Exception | None = None

    @property
    def loaded(self) -> bool:
        """True once the first snapshot has been applied."""
        return self._loaded.is_set()

    @property
    def running(self) -> bool:
        return self._subscription is not None

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    async def start(self) -> None:
        """Subscribe to the collection. Calling it again is a no-op."""
        if self._subscription is not None:
            return
        self._subscription = self.store.subscribe(
            self.collection,
            on_snapshot=self._on_snapshot,
            on_error=self._on_error,
            order_by=self.order_by,
            descending=self.descending,
        )

    async def stop(self) -> None:
        """Tear down the subscription; the last snapshot stays readable."""
        if self._subscription is None:
            return
        self._subscription.unsubscribe()
        self._subscription = None

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback fired after each snapshot; returns a remover."""
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    async def wait_until_loaded(self, timeout: float | None = None) -> bool:
        """Wait for the first snapshot; returns False if ``timeout`` elapses."""
        try:
            await asyncio.wait_for(self._loaded.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def wait_for(self, predicate: Callable[[], bool], timeout: float) -> bool:
        """Wait until ``predicate`` holds after some snapshot, up to ``timeout``."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            changed = self._changed
            try:
                await asyncio.wait_for(changed.wait(), timeout=remaining)
            except TimeoutError:
                return predicate()
        return True

    def _on_snapshot(self, documents: list[StoredDocument]) -> None:
        self._apply(documents)
        self._last_error = None
        self._loaded.set()
        # Wake current waiters, then arm a fresh event for the next snapshot.
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Snapshot listener for %s failed", self.collection)

    def _on_error(self, error: Exception) -> None:
        # Stale-but-available: keep the last snapshot.
        self._last_error = error
        logger.warning("Subscription to %s reported an error: %s", self.collection, error)

    def _apply(self, documents: list[StoredDocument]) -> None:
        raise NotImplementedError


class FeedSynchronizer(CollectionSubscriber):
    """Ordered, wholesale-replaced snapshot of the message collection."""

    order_by = "timestamp"
    descending = True

    def __init__(self, store: DocumentStore, collection: str | None = None) -> None:
        super().__init__(store, collection or settings.messages_collection)
        self._messages: list[Message] = []
        self._index = MessageIndex()

    @property
    def snapshot(self) -> list[Message]:
        """The current ordered messages, newest first, before moderation."""
        return list(self._messages)

    @property
    def index(self) -> MessageIndex:
        """id -> message lookup for the current snapshot."""
        return self._index

    def get(self, message_id: str) -> Message | None:
        return self._index.get(message_id)

    def _apply(self, documents: list[StoredDocument]) -> None:
        messages: list[Message] = []
        for document in documents:
            try:
                messages.append(Message.model_validate({**document.data, "id": document.id}))
            except ValidationError as e:
                logger.warning("Skipping malformed message %s: %s", document.id, e)
        self._messages = messages
        self._index = MessageIndex(messages)
        logger.debug("Feed snapshot replaced with %d messages", len(messages))

    # -- write path ---------------------------------------------------------------

    async def append(self, message: Message) -> str:
        """Persist a new message and return the store-assigned id.

        Store errors propagate to the caller unchanged.
        """
        message_id = await self.store.append(self.collection, message.to_document())
        logger.info(
            "Appended message %s (sequence %d) from %s",
            message_id,
            message.sequence_number,
            message.sender_id,
        )
        return message_id

    async def update_votes(self, message_id: str, patch: Mapping[FieldPath, Any]) -> None:
        """Apply a vote field update to one message."""
        await self.store.update(self.collection, message_id, patch)

    async def delete(self, message_id: str) -> None:
        """Remove a message from the store permanently."""
        await self.store.delete(self.collection, message_id)
        logger.info("Deleted message %s", message_id)
