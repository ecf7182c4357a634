# src/retrolog/schemas/moderation.py
"""Moderation-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BanRecord(BaseModel):
    """Presence of a record hides every message from ``user_id``."""

    user_id: str
    timestamp: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class BanCreate(BaseModel):
    """Schema for blocking a sender."""

    sender_id: str = Field(..., min_length=1)
