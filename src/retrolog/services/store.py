"""Document store port used by the feed core.

The remote real-time store is an external collaborator. The core only relies
on the narrow surface defined here: full-snapshot subscriptions plus
append/get/set/update/delete on individual documents.
"""

from __future__ import annotations

import copy
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

FieldPath = str | tuple[str, ...]


class _DeleteField:
    """Sentinel removing a field when used as a value in ``update``."""

    _instance: _DeleteField | None = None

    def __new__(cls) -> _DeleteField:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


@dataclass(frozen=True)
class StoredDocument:
    """A document as delivered inside a snapshot."""

    id: str
    data: Mapping[str, Any] = field(default_factory=dict)


SnapshotCallback = Callable[[list[StoredDocument]], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    """Handle returned by ``DocumentStore.subscribe``."""

    def unsubscribe(self) -> None:
        ...


class DocumentStore(Protocol):
    """Real-time document store consumed by the feed core."""

    def subscribe(
        self,
        collection: str,
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Subscription:
        ...

    async def append(self, collection: str, document: Mapping[str, Any]) -> str:
        ...

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        ...

    async def set(self, collection: str, doc_id: str, document: Mapping[str, Any]) -> None:
        ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Mapping[FieldPath, Any],
    ) -> None:
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...


def apply_field_updates(
    data: Mapping[str, Any],
    partial: Mapping[FieldPath, Any],
) -> dict[str, Any]:
    """Return a copy of ``data`` with field-path updates applied.

    A plain string key replaces a top-level field. A tuple key addresses a
    nested field, creating intermediate mappings as needed. ``DELETE_FIELD``
    removes the addressed field.

    Examples:
        >>> apply_field_updates({"votes": {"a": 1}}, {("votes", "b"): -1})
        {'votes': {'a': 1, 'b': -1}}
        >>> apply_field_updates({"votes": {"a": 1}}, {("votes", "a"): DELETE_FIELD})
        {'votes': {}}
    """
    result = copy.deepcopy(dict(data))
    for path, value in partial.items():
        keys = (path,) if isinstance(path, str) else tuple(path)
        if not keys:
            raise ValueError("Field path must not be empty")

        target: dict[str, Any] = result
        for key in keys[:-1]:
            child = target.get(key)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    target = {}
                    break
                child = {}
                target[key] = child
            target = child

        if value is DELETE_FIELD:
            target.pop(keys[-1], None)
        else:
            target[keys[-1]] = copy.deepcopy(value)
    return result


def _sort_group(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    return type(value).__name__


def order_documents(
    documents: list[StoredDocument],
    order_by: str | None,
    descending: bool,
) -> list[StoredDocument]:
    """Sort snapshot documents by a top-level field.

    Only values of the most common type are compared. Documents missing the
    field, or holding a value of another type (e.g. a string among numeric
    timestamps), sort last in their original order.
    """
    if order_by is None:
        return list(documents)

    groups = Counter(
        _sort_group(doc.data[order_by]) for doc in documents if doc.data.get(order_by) is not None
    )
    if not groups:
        return list(documents)
    group = groups.most_common(1)[0][0]

    sortable: list[StoredDocument] = []
    rest: list[StoredDocument] = []
    for doc in documents:
        value = doc.data.get(order_by)
        if value is not None and _sort_group(value) == group:
            sortable.append(doc)
        else:
            rest.append(doc)
    try:
        sortable.sort(key=lambda doc: (doc.data[order_by], doc.id), reverse=descending)
    except TypeError:
        # Values of one type that still do not order, such as dicts.
        return list(documents)
    return sortable + rest
