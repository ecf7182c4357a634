# src/retrolog/api/v1/endpoints/feed.py
"""Feed read endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from retrolog.api.v1.dependencies import FeedServiceDep
from retrolog.schemas.feed import FeedItem, FeedOrder, FeedTab, TagCount
from retrolog.services.errors import MessageNotFoundError

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("/", response_model=list[FeedItem])
async def list_feed(
    feed: FeedServiceDep,
    q: str | None = Query(None, description="Search content, sequence numbers and tags"),
    tag: str | None = Query(None, description="Only messages carrying this tag"),
    sort: FeedOrder = Query(FeedOrder.NEWEST),
    tab: FeedTab = Query(FeedTab.ALL, description="all messages or the caller's dialogs"),
) -> list[FeedItem]:
    """List the moderated feed.

    Args:
        feed: Session-bound feed facade
        q: Free-text search query
        tag: Tag filter
        sort: newest, oldest or best
        tab: all, or mine for the caller's messages and replies to them

    Returns:
        Enriched feed items with score and parent context
    """
    return await feed.feed(query=q, tag=tag, order=sort, tab=tab)


@router.get("/tags/popular", response_model=list[TagCount])
async def list_popular_tags(feed: FeedServiceDep) -> list[TagCount]:
    """Most used tags across the moderated feed."""
    return feed.popular_tags()


@router.get("/{message_id}", response_model=FeedItem)
async def get_feed_item(message_id: str, feed: FeedServiceDep) -> FeedItem:
    """Get one visible message with its parent context."""
    try:
        return await feed.item(message_id)
    except MessageNotFoundError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found",
        ) from err
