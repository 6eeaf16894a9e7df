# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("PYTEST_RUNNING", "true")

from shoptalk.core.security import create_access_token
from shoptalk.db.session import Base
from shoptalk.db.session import get_db as app_get_session
from shoptalk.main import app as fastapi_app
from shoptalk.models import User
from shoptalk.services import MessagingService, SqlUserDirectory
from shoptalk.services.conversation_index import ConversationLocks

TEST_DB_URL = "sqlite://"

CLIENT_ID = "client-ana"
BARBER_ID = "barber-ben"
STRANGER_ID = "client-sam"


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
def db_session(engine: Engine) -> Iterator[Session]:
    # The service commits, so each test cleans up by deleting every row.
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def _make_user(db: Session, user_id: str, display_name: str) -> User:
    user = SqlUserDirectory(db).ensure_user(user_id, display_name=display_name)
    db.commit()
    return user


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """A client of the shop."""
    return _make_user(db_session, CLIENT_ID, "Ana Client")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    """A barber the client talks to."""
    return _make_user(db_session, BARBER_ID, "Ben Barber")


@pytest.fixture()
def third_user(db_session: Session) -> User:
    """Someone outside the client/barber conversation."""
    return _make_user(db_session, STRANGER_ID, "Sam Stranger")


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    token = create_access_token(test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    token = create_access_token(other_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def third_auth_token(third_user: User) -> dict[str, str]:
    token = create_access_token(third_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def messaging(db_session: Session) -> MessagingService:
    """A messaging service with its own lock table."""
    return MessagingService(db_session, locks=ConversationLocks())
