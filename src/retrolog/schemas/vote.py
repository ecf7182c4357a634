# src/retrolog/schemas/vote.py
"""Vote-related Pydantic schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class VoteDirection(str, Enum):
    """Direction of a vote click."""

    UP = "up"
    DOWN = "down"

    @property
    def value_int(self) -> int:
        return 1 if self is VoteDirection.UP else -1


class VoteCreate(BaseModel):
    """Schema for casting or toggling a vote."""

    message_id: str
    direction: VoteDirection = Field(..., description="up or down; repeating a direction removes it")


class VoteResponse(BaseModel):
    """Vote state of a message after a toggle."""

    message_id: str
    votes: dict[str, int]
    score: int
