"""Database helpers for the document store adapter."""
