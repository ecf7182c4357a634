# src/retrolog/api/v1/endpoints/votes.py
"""Vote-related endpoints."""

from fastapi import APIRouter, HTTPException, status

from retrolog.api.v1.dependencies import FeedServiceDep
from retrolog.schemas.vote import VoteCreate, VoteResponse
from retrolog.services.errors import DocumentNotFoundError, MessageNotFoundError, StoreError
from retrolog.services.votes import score

router = APIRouter(prefix="/votes", tags=["votes"])


@router.post("/", response_model=VoteResponse)
async def cast_vote(vote_data: VoteCreate, feed: FeedServiceDep) -> VoteResponse:
    """Cast, flip or withdraw the caller's vote on a message."""
    try:
        votes = await feed.vote(vote_data.message_id, vote_data.direction)
    except (MessageNotFoundError, DocumentNotFoundError) as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        ) from err
    except StoreError as err:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Vote could not be stored: {err}",
        ) from err

    return VoteResponse(message_id=vote_data.message_id, votes=votes, score=score(votes))
