# src/retrolog/api/v1/endpoints/messages.py
"""Message write endpoints."""

from fastapi import APIRouter, HTTPException, status
from pydantic import ValidationError

from retrolog.api.v1.dependencies import FeedServiceDep
from retrolog.schemas.message import Message, MessageCreate
from retrolog.services.errors import (
    DocumentNotFoundError,
    MessageNotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    StoreError,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(payload: MessageCreate, feed: FeedServiceDep) -> Message:
    """Post a new message or reply.

    Raises:
        HTTPException: 422 for blank content, 429 while cooling down,
            502 if the store rejects the write
    """
    try:
        return await feed.send(
            payload.content,
            title=payload.title,
            parent_id=payload.parent_id,
            manual_tags=payload.manual_tags(),
        )
    except ValidationError as err:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in err.errors()],
        ) from err
    except RateLimitedError as err:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Sending too fast; please wait",
            headers={"Retry-After": str(err.retry_after)},
        ) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Message could not be stored: {err}",
        ) from err


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: str, feed: FeedServiceDep) -> None:
    """Delete a message as its sender or as an admin."""
    try:
        await feed.delete_message(message_id)
    except (MessageNotFoundError, DocumentNotFoundError) as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        ) from err
    except PermissionDeniedError as err:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(err),
        ) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Message could not be deleted: {err}",
        ) from err
