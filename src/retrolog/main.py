# src/retrolog/main.py
"""Main entry point for the RetroLog application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from retrolog.api.v1 import (
    feed_router,
    identity_router,
    messages_router,
    moderation_router,
    votes_router,
)
from retrolog.core.settings import Settings, settings
from retrolog.db.session import create_tables
from retrolog.services.feed_service import FeedCore
from retrolog.services.sql_store import SqlDocumentStore
from retrolog.services.store import DocumentStore

logger = logging.getLogger(__name__)

DESCRIPTION = "Anonymous real-time message feed with tags, replies, votes and moderation"


def create_app(
    store: DocumentStore | None = None,
    config: Settings | None = None,
) -> FastAPI:
    """Build the API application.

    Args:
        store: Document store to sync against. Defaults to a SQL-backed store
            on the configured database.
        config: Settings override; defaults to the module-level settings.
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned_store: SqlDocumentStore | None = None
        feed_store = store
        if feed_store is None:
            create_tables()
            owned_store = SqlDocumentStore()
            feed_store = owned_store

        core = FeedCore(feed_store, config)
        app.state.feed_core = core
        await core.start()
        if not await core.feed.wait_until_loaded(timeout=config.snapshot_settle_seconds):
            logger.warning("Initial feed snapshot not loaded yet; serving empty feed")
        try:
            yield
        finally:
            await core.stop()
            if owned_store is not None:
                owned_store.close()

    app = FastAPI(
        title=f"{config.app_name} API",
        description=DESCRIPTION,
        version=config.app_version,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=config.cors_allow_methods,
        allow_headers=config.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    # Include API routers
    app.include_router(feed_router, prefix="/api/v1")
    app.include_router(messages_router, prefix="/api/v1")
    app.include_router(votes_router, prefix="/api/v1")
    app.include_router(moderation_router, prefix="/api/v1")
    app.include_router(identity_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, object]:
        """Health check endpoint reporting snapshot freshness."""
        core: FeedCore | None = getattr(app.state, "feed_core", None)
        if core is None:
            return {"status": "starting"}
        error = core.feed.last_error or core.bans.last_error
        return {
            "status": "degraded" if error is not None else "ok",
            "loaded": core.feed.loaded,
            "messages": len(core.feed.snapshot),
            "banned": len(core.bans.ban_set),
        }

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": f"{config.app_name} API",
            "version": config.app_version,
            "description": DESCRIPTION,
            "docs": "/docs",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run("retrolog.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
