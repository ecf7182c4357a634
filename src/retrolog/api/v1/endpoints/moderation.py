"""Moderation endpoints: blocking and unblocking senders."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from retrolog.api.v1.dependencies import FeedCoreDep, FeedServiceDep
from retrolog.schemas.moderation import BanCreate, BanRecord
from retrolog.services.errors import DocumentNotFoundError, PermissionDeniedError, StoreError

router = APIRouter(prefix="/moderation", tags=["moderation"])


def _forbidden(err: PermissionDeniedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(err))


@router.get("/bans", response_model=list[str])
async def list_bans(feed: FeedServiceDep, core: FeedCoreDep) -> list[str]:
    """List banned sender ids (admin only)."""
    identity = await feed.identity()
    if not identity.policy.can_ban():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins may view bans",
        )
    return sorted(core.bans.ban_set)


@router.post("/bans", response_model=BanRecord, status_code=status.HTTP_201_CREATED)
async def block_sender(payload: BanCreate, feed: FeedServiceDep) -> BanRecord:
    """Ban a sender; their messages are hidden but not deleted."""
    try:
        return await feed.block_sender(payload.sender_id)
    except PermissionDeniedError as err:
        raise _forbidden(err) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Ban could not be stored: {err}",
        ) from err


@router.delete("/bans/{sender_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_sender(sender_id: str, feed: FeedServiceDep) -> None:
    """Lift a sender's ban."""
    try:
        await feed.unblock_sender(sender_id)
    except PermissionDeniedError as err:
        raise _forbidden(err) from err
    except DocumentNotFoundError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sender is not banned",
        ) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Ban could not be removed: {err}",
        ) from err
