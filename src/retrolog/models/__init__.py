# src/retrolog/models/__init__.py
"""SQLAlchemy models for the RetroLog document store."""

from .document import Document

__all__ = ["Document"]
