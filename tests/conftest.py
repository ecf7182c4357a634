# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from retrolog.core.security import create_access_token
from retrolog.core.settings import Settings
from retrolog.db.session import Base
from retrolog.main import create_app
from retrolog.schemas.user import Principal
from retrolog.services.feed_service import FeedCore
from retrolog.services.sql_store import SqlDocumentStore

TEST_DB_URL = "sqlite://"
ADMIN_EMAIL = "admin@example.com"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def test_settings() -> Settings:
    """Settings tuned for fast, deterministic tests."""
    return Settings(
        admin_emails=[ADMIN_EMAIL],
        send_cooldown_seconds=0.0,
        snapshot_poll_interval_seconds=0.05,
        snapshot_settle_seconds=2.0,
    )


@pytest.fixture()
def sql_store(session_factory: sessionmaker[Session]) -> Iterator[SqlDocumentStore]:
    store = SqlDocumentStore(session_factory, poll_interval=0.05)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture()
def app(sql_store: SqlDocumentStore, test_settings: Settings) -> FastAPI:
    return create_app(store=sql_store, config=test_settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def feed_core(client: TestClient, app: FastAPI) -> FeedCore:
    """The core created by the running application's lifespan."""
    return app.state.feed_core


@pytest.fixture()
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build bearer headers for an authenticated principal."""

    def _build(
        uid: str,
        email: str | None = None,
        *,
        verified: bool = True,
        name: str | None = None,
    ) -> dict[str, str]:
        principal = Principal(
            uid=uid,
            email=email,
            display_name=name,
            email_verified=verified,
        )
        return {"Authorization": f"Bearer {create_access_token(principal)}"}

    return _build


@pytest.fixture()
def admin_headers(auth_headers: Callable[..., dict[str, str]]) -> dict[str, str]:
    return auth_headers("admin-uid", ADMIN_EMAIL, name="Admin")
