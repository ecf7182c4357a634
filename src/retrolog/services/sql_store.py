"""SQLAlchemy-backed implementation of the document store port.

Collections live in a single ``document`` table. Live subscriptions are
background polling tasks: each one reloads its collection on an interval (or
immediately after a local write) and emits a full snapshot whenever the
collection's fingerprint changes.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import threading
from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from retrolog.core.settings import settings
from retrolog.models import Document
from retrolog.services.errors import DocumentNotFoundError, PermissionStoreError, StoreError
from retrolog.services.store import (
    ErrorCallback,
    FieldPath,
    SnapshotCallback,
    StoredDocument,
    apply_field_updates,
    order_documents,
)

# Configure logger for this module
logger = logging.getLogger(__name__)

# Length of generated document ids, matching common real-time store ids.
DOCUMENT_ID_BYTES = 15

Fingerprint = tuple[tuple[str, int], ...]


def _new_document_id() -> str:
    return secrets.token_urlsafe(DOCUMENT_ID_BYTES)


class _PollingSubscription:
    """Background task delivering full snapshots of one collection."""

    def __init__(
        self,
        store: SqlDocumentStore,
        collection: str,
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None,
        order_by: str | None,
        descending: bool,
    ) -> None:
        self.collection = collection
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._order_by = order_by
        self._descending = descending
        self._fingerprint: Fingerprint | None = None
        self._wake = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._active = False

    def start(self) -> None:
        self._active = True
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"snapshot-{self.collection}"
        )

    def poke(self) -> None:
        """Ask the poller to reload without waiting for the next interval."""
        self._wake.set()

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._detach(self)
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.info("Unsubscribed from collection %s", self.collection)

    def _deliver(self, documents: list[StoredDocument]) -> None:
        # A bad snapshot is logged and dropped; the poller keeps running.
        try:
            ordered = order_documents(documents, self._order_by, self._descending)
            logger.debug(
                "Delivering snapshot of %s with %d documents",
                self.collection,
                len(ordered),
            )
            self._on_snapshot(ordered)
        except Exception as e:
            logger.error(
                "Snapshot delivery for %s failed: %s", self.collection, e, exc_info=True
            )

    async def _run(self) -> None:
        interval = max(0.05, self._store.poll_interval)

        while self._active:
            self._wake.clear()
            try:
                documents, fingerprint = await asyncio.to_thread(
                    self._store._load_collection, self.collection
                )
            except StoreError as e:
                logger.warning("Snapshot poll for %s failed: %s", self.collection, e)
                if self._on_error is not None:
                    self._on_error(e)
            else:
                if fingerprint != self._fingerprint and self._active:
                    self._fingerprint = fingerprint
                    self._deliver(documents)

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=interval)
            except TimeoutError:
                pass


class SqlDocumentStore:
    """Document store persisting JSON documents through SQLAlchemy."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        *,
        poll_interval: float | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            session_factory: Session factory to use. If None, uses the global one.
            poll_interval: Seconds between snapshot polls. Defaults to settings.
        """
        if session_factory is None:
            from retrolog.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self.poll_interval = (
            settings.snapshot_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self._subscriptions: set[_PollingSubscription] = set()
        # Serializes access so a shared SQLite connection is never used concurrently.
        self._db_lock = threading.Lock()

    # -- subscriptions -----------------------------------------------------------

    def subscribe(
        self,
        collection: str,
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> _PollingSubscription:
        """Start a live subscription; must be called from a running event loop."""
        subscription = _PollingSubscription(
            self,
            collection,
            on_snapshot=on_snapshot,
            on_error=on_error,
            order_by=order_by,
            descending=descending,
        )
        self._subscriptions.add(subscription)
        subscription.start()
        logger.info("Subscribed to collection %s", collection)
        return subscription

    def close(self) -> None:
        """Tear down every live subscription."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _detach(self, subscription: _PollingSubscription) -> None:
        self._subscriptions.discard(subscription)

    def _notify(self, collection: str) -> None:
        for subscription in list(self._subscriptions):
            if subscription.collection == collection:
                subscription.poke()

    # -- write path --------------------------------------------------------------

    async def append(self, collection: str, document: Mapping[str, Any]) -> str:
        """Insert a document under a freshly generated id and return the id."""
        doc_id = _new_document_id()
        await asyncio.to_thread(self._insert, collection, doc_id, dict(document))
        self._notify(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Return a copy of a document's data, or None if absent."""
        return await asyncio.to_thread(self._get, collection, doc_id)

    async def set(self, collection: str, doc_id: str, document: Mapping[str, Any]) -> None:
        """Create or overwrite a document under a caller-chosen id."""
        await asyncio.to_thread(self._set, collection, doc_id, dict(document))
        self._notify(collection)

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Mapping[FieldPath, Any],
    ) -> None:
        """Apply field-path updates to an existing document."""
        await asyncio.to_thread(self._update, collection, doc_id, dict(partial))
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document permanently."""
        await asyncio.to_thread(self._delete, collection, doc_id)
        self._notify(collection)

    # -- synchronous helpers run in worker threads --------------------------------

    def _load_collection(self, collection: str) -> tuple[list[StoredDocument], Fingerprint]:
        try:
            with self._db_lock, self._session_factory() as db:
                rows = db.scalars(select(Document).where(Document.collection == collection)).all()
                documents = [StoredDocument(id=row.id, data=dict(row.data or {})) for row in rows]
                fingerprint = tuple(sorted((row.id, int(row.revision)) for row in rows))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load collection {collection}: {e}") from e
        return documents, fingerprint

    def _insert(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            with self._db_lock, self._session_factory() as db:
                db.add(Document(collection=collection, id=doc_id, data=data, revision=1))
                db.commit()
        except IntegrityError as e:
            raise PermissionStoreError(f"Document {collection}/{doc_id} already exists") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to append to {collection}: {e}") from e

    def _get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            with self._db_lock, self._session_factory() as db:
                row = db.get(Document, (collection, doc_id))
                return dict(row.data or {}) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read {collection}/{doc_id}: {e}") from e

    def _set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        try:
            with self._db_lock, self._session_factory() as db:
                row = db.get(Document, (collection, doc_id))
                if row is None:
                    db.add(Document(collection=collection, id=doc_id, data=data, revision=1))
                else:
                    row.data = data
                    row.revision = int(row.revision) + 1
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to write {collection}/{doc_id}: {e}") from e

    def _update(self, collection: str, doc_id: str, partial: dict[FieldPath, Any]) -> None:
        try:
            with self._db_lock, self._session_factory() as db:
                row = db.execute(
                    select(Document)
                    .where(Document.collection == collection, Document.id == doc_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if row is None:
                    raise DocumentNotFoundError(f"Document {collection}/{doc_id} not found")
                # Assign a new dict so the JSON column registers the change.
                row.data = apply_field_updates(row.data or {}, partial)
                row.revision = int(row.revision) + 1
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update {collection}/{doc_id}: {e}") from e

    def _delete(self, collection: str, doc_id: str) -> None:
        try:
            with self._db_lock, self._session_factory() as db:
                result = db.execute(
                    delete(Document).where(
                        Document.collection == collection,
                        Document.id == doc_id,
                    )
                )
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete {collection}/{doc_id}: {e}") from e
        if result.rowcount == 0:
            raise DocumentNotFoundError(f"Document {collection}/{doc_id} not found")
