# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-research-commons")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from research_commons.core.security import create_access_token
from research_commons.db.session import Base, enable_sqlite_savepoints
from research_commons.db.session import get_db as app_get_session
from research_commons.main import app as fastapi_app
from research_commons.models import ContentItem, ContentType, Role, User
from research_commons.services.rate_limit import get_rate_limiter

TEST_DB_URL = "sqlite://"

_USER_COUNTER = count(1)


class FakeClock:
    """Controllable stand-in for ``utcnow``."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    """File-backed engine; each session checks out its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'commons.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def file_sessions(file_engine: Engine) -> sessionmaker[Session]:
    """Sessions that keep loaded state across commits, like a long-lived reviewer."""
    return sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Core deletes bypass the ORM guards on audit rows.
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


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> Iterator[None]:
    """Give every test a fresh set of rate-limit windows."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists a user with the given role."""

    def _make_user(role: Role = Role.MEMBER, display_name: str | None = None) -> User:
        number = next(_USER_COUNTER)
        user = User(
            id=f"user-{number:04d}",
            display_name=display_name or f"{role.value.title()} {number}",
            role=role.value,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def author(make_user: Callable[..., User]) -> User:
    """Member who wrote the content under review."""
    return make_user(Role.MEMBER, "Content Author")


@pytest.fixture()
def reporter(make_user: Callable[..., User]) -> User:
    """Member who files reports."""
    return make_user(Role.MEMBER, "Concerned Reader")


@pytest.fixture()
def moderator(make_user: Callable[..., User]) -> User:
    return make_user(Role.MODERATOR, "Moderator")


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    return make_user(Role.ADMIN, "Administrator")


@pytest.fixture()
def researchers(make_user: Callable[..., User]) -> list[User]:
    """Five researchers eligible to sit on juries."""
    return [make_user(Role.RESEARCHER) for _ in range(5)]


@pytest.fixture()
def post(db_session: Session, author: User) -> ContentItem:
    """A stored post by ``author``."""
    item = ContentItem(
        content_type=ContentType.POST.value,
        author_id=author.id,
        title="Water table survey, northern district",
        body="Measured well depths at twelve sites during the dry season.",
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper building bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
