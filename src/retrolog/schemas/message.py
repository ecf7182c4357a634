# src/retrolog/schemas/message.py
"""Message-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_TAG_LENGTH = 32
MAX_TITLE_LENGTH = 120
MAX_MESSAGE_LENGTH = 2000


class Message(BaseModel):
    """A single feed entry as stored in the remote document collection.

    Field names are snake_case in Python and camelCase on the wire, matching
    the documents other clients write into the shared collection.
    """

    id: str | None = Field(None, description="Store-assigned document id")
    # Length limits apply to input only; other clients may have written longer text.
    title: str | None = None
    content: str
    timestamp: int = Field(..., description="Sender wall clock, epoch milliseconds")
    sequence_number: int = Field(..., ge=1)
    sender_id: str
    sender_name: str | None = None
    sender_avatar: str | None = None
    parent_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_admin: bool | None = None
    votes: dict[str, int] = Field(default_factory=dict)

    # Extension fields carried through untouched.
    community: str | None = None
    media: list[str] | None = None
    comment_count: int | None = None
    share_count: int | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("votes")
    @classmethod
    def _drop_neutral_votes(cls, value: dict[str, int]) -> dict[str, int]:
        return {voter: vote for voter, vote in value.items() if vote in (1, -1)}

    def to_document(self) -> dict[str, object]:
        """Serialize for the document store, leaving the id to the store."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"id"})


class MessageDraft(BaseModel):
    """Validated user input for a new message."""

    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    title: str | None = Field(None, max_length=MAX_TITLE_LENGTH)
    parent_id: str | None = None
    manual_tags: list[str] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("content must not be empty")
        return stripped

    @field_validator("title")
    @classmethod
    def _blank_title_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class MessageCreate(BaseModel):
    """Schema for posting a new message through the API."""

    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    title: str | None = Field(None, max_length=MAX_TITLE_LENGTH)
    parent_id: str | None = Field(None, description="Parent message id for replies")
    tags: list[str] | str = Field(
        default_factory=list,
        description="Manual tags, as a list or a comma separated string",
    )

    def manual_tags(self) -> list[str]:
        """Return manual tags as a list of raw segments."""
        if isinstance(self.tags, str):
            return [self.tags]
        return list(self.tags)
