# src/retrolog/models/document.py
"""SQLAlchemy model backing the schemaless document collections."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from retrolog.db.session import Base
from retrolog.db.time import utcnow


class Document(Base):
    """One JSON document inside a named collection.

    Messages, ban records and user profiles all share this table; the
    ``collection`` column partitions them the way a document database would.
    """

    __tablename__ = "document"
    __table_args__ = (
        Index("ix_document_collection", "collection"),
    )

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # Bumped on every write so pollers can fingerprint a collection cheaply.
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
