import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reqmgmt.db import models
from reqmgmt.refids import refresh_allocator
from reqmgmt.utils.settings import refresh_reference_id_settings_cache

_REFID_ENV_VARS = (
    "REFID_LOCK_TIMEOUT_MS",
    "REFID_LOCK_POLL_INTERVAL_MS",
    "REFID_COUNTER_BACKEND",
)


@pytest.fixture(autouse=True)
def _reset_reference_id_state(monkeypatch):
    """Clear env + cached settings and the default allocator between tests."""
    for name in _REFID_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    refresh_reference_id_settings_cache()
    refresh_allocator()
    yield
    refresh_reference_id_settings_cache()
    refresh_allocator()


# Fresh in-memory SQLite schema per test
@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def SessionLocal(sqlite_engine):
    return sessionmaker(bind=sqlite_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(SessionLocal):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def user_factory(db_session):
    def _create(username: str = "owner"):
        user = models.User(username=username, email=f"{username}@example.com")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _create


@pytest.fixture
def test_user(user_factory):
    return user_factory("testuser")


@pytest.fixture
def epic_factory(db_session, test_user):
    def _create(title: str = "Epic", reference_id: str | None = None, commit: bool = True):
        epic = models.Epic(
            creator_id=test_user.id,
            assignee_id=test_user.id,
            title=title,
            reference_id=reference_id,
        )
        db_session.add(epic)
        if commit:
            db_session.commit()
        else:
            db_session.flush()
        return epic
    return _create


@pytest.fixture
def user_story_factory(db_session, test_user, epic_factory):
    def _create(title: str = "Story", epic=None, reference_id: str | None = None):
        story = models.UserStory(
            epic_id=(epic or epic_factory("Parent epic")).id,
            creator_id=test_user.id,
            assignee_id=test_user.id,
            title=title,
            reference_id=reference_id,
        )
        db_session.add(story)
        db_session.commit()
        return story
    return _create
