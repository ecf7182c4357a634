# tests/services/conftest.py
from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Mapping
from itertools import count
from typing import Any

import pytest
import pytest_asyncio

from retrolog.core.settings import Settings
from retrolog.schemas.message import Message
from retrolog.schemas.user import Principal
from retrolog.services.errors import DocumentNotFoundError, StoreError
from retrolog.services.feed_service import FeedCore, FeedService
from retrolog.services.identity import (
    IdentityProvider,
    MemoryKeyValueStore,
    SessionContext,
    StaticPrincipalSource,
)
from retrolog.services.rate_limit import RateLimiter
from retrolog.services.store import (
    ErrorCallback,
    FieldPath,
    SnapshotCallback,
    StoredDocument,
    apply_field_updates,
    order_documents,
)

ADMIN_EMAIL = "admin@example.com"


class _MemorySubscription:
    def __init__(self, store, collection, on_snapshot, on_error, order_by, descending):
        self.store = store
        self.collection = collection
        self.on_snapshot: SnapshotCallback = on_snapshot
        self.on_error: ErrorCallback | None = on_error
        self.order_by = order_by
        self.descending = descending
        self.active = True

    def emit(self) -> None:
        documents = [
            StoredDocument(id=doc_id, data=dict(data))
            for doc_id, data in self.store.collections[self.collection].items()
        ]
        self.on_snapshot(order_documents(documents, self.order_by, self.descending))

    def unsubscribe(self) -> None:
        self.active = False


class InMemoryDocumentStore:
    """Document store delivering snapshots synchronously after every write."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.subscriptions: list[_MemorySubscription] = []
        self.fail_writes: StoreError | None = None
        self._ids = count(1)

    def subscribe(self, collection, *, on_snapshot, on_error=None, order_by=None, descending=False):
        subscription = _MemorySubscription(
            self, collection, on_snapshot, on_error, order_by, descending
        )
        self.subscriptions.append(subscription)
        subscription.emit()
        return subscription

    def emit(self, collection: str) -> None:
        for subscription in self.subscriptions:
            if subscription.active and subscription.collection == collection:
                subscription.emit()

    def fail_subscription(self, collection: str, error: Exception) -> None:
        for subscription in self.subscriptions:
            if subscription.active and subscription.collection == collection:
                subscription.on_error(error)

    def seed(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        self.collections[collection][doc_id] = dict(data)
        self.emit(collection)

    def _check_writable(self) -> None:
        if self.fail_writes is not None:
            raise self.fail_writes

    async def append(self, collection: str, document: Mapping[str, Any]) -> str:
        self._check_writable()
        doc_id = f"doc-{next(self._ids)}"
        self.collections[collection][doc_id] = dict(document)
        self.emit(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        data = self.collections[collection].get(doc_id)
        return dict(data) if data is not None else None

    async def set(self, collection: str, doc_id: str, document: Mapping[str, Any]) -> None:
        self._check_writable()
        self.collections[collection][doc_id] = dict(document)
        self.emit(collection)

    async def update(self, collection: str, doc_id: str, partial: Mapping[FieldPath, Any]) -> None:
        self._check_writable()
        if doc_id not in self.collections[collection]:
            raise DocumentNotFoundError(f"{collection}/{doc_id}")
        self.collections[collection][doc_id] = apply_field_updates(
            self.collections[collection][doc_id], partial
        )
        self.emit(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check_writable()
        if self.collections[collection].pop(doc_id, None) is None:
            raise DocumentNotFoundError(f"{collection}/{doc_id}")
        self.emit(collection)


class FakeClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def _make_message(
    sequence_number: int,
    sender_id: str = "sender",
    *,
    message_id: str | None = None,
    timestamp: int | None = None,
    **fields: Any,
) -> Message:
    return Message(
        id=message_id or f"m{sequence_number}",
        content=fields.pop("content", f"message {sequence_number}"),
        timestamp=timestamp if timestamp is not None else 1_000 + sequence_number,
        sequence_number=sequence_number,
        sender_id=sender_id,
        **fields,
    )


@pytest.fixture
def make_message() -> Callable[..., Message]:
    return _make_message


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def core_settings() -> Settings:
    return Settings(
        admin_emails=[ADMIN_EMAIL],
        send_cooldown_seconds=15.0,
        snapshot_settle_seconds=0.2,
    )


@pytest_asyncio.fixture
async def core(memory_store, core_settings):
    core = FeedCore(memory_store, core_settings)
    await core.start()
    yield core
    await core.stop()


@pytest.fixture
def seed_message(memory_store, core_settings) -> Callable[[Message], None]:
    def _seed(message: Message) -> None:
        memory_store.seed(core_settings.messages_collection, message.id, message.to_document())

    return _seed


@pytest.fixture
def make_service(core, clock) -> Callable[..., FeedService]:
    """Build a session-bound service for an anonymous or authenticated client."""

    def _make(
        principal: Principal | None = None,
        *,
        anon_id: str | None = None,
        storage: MemoryKeyValueStore | None = None,
        limiter_clock: Callable[[], float] | None = None,
    ) -> FeedService:
        if storage is None:
            storage = MemoryKeyValueStore({"anon_log_user_id": anon_id} if anon_id else None)
        identity = IdentityProvider(
            storage,
            StaticPrincipalSource(principal),
            core.profiles,
            admin_emails=core.settings.admin_emails,
            clock=clock,
        )
        limiter = RateLimiter(
            core.settings.send_cooldown_seconds,
            **({"clock": limiter_clock} if limiter_clock else {}),
        )
        return FeedService(core, SessionContext(storage, identity, limiter), clock=clock)

    return _make


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(uid="admin-uid", email=ADMIN_EMAIL, email_verified=True)
