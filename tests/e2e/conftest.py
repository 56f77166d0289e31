import os
import shutil
import subprocess

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from reqmgmt.db import models
from reqmgmt.refids import registry

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

_TABLES = ("prompts", "steering_documents", "requirements", "acceptance_criteria", "user_stories", "epics", "users")


def _require_docker() -> None:
    if os.getenv("SKIP_DOCKER_TESTS") == "1":
        pytest.skip("SKIP_DOCKER_TESTS=1")
    if not shutil.which("docker"):
        pytest.skip("Docker CLI is not available; skipping e2e tests that require containers")
    # `docker info` fails when the daemon is not running or not reachable
    try:
        proc = subprocess.run(["docker", "info"], capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError):
        pytest.skip("Docker daemon is not available; skipping e2e tests that require containers")
    if proc.returncode != 0:
        pytest.skip("Docker daemon is not available; skipping e2e tests that require containers")


def alembic_config() -> Config:
    """Alembic config bound to the project's migrations; env.py reads TEST_DATABASE_URL."""
    cfg = Config(os.path.join(PROJECT_ROOT, "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(PROJECT_ROOT, "migrations"))
    return cfg


# Session-wide Postgres test container with the schema migrated to head
@pytest.fixture(scope="session")
def pg_url():
    _require_docker()
    from testcontainers.postgres import PostgresContainer

    image = os.getenv("TEST_POSTGRES_IMAGE", "postgres:16-alpine")
    previous = os.environ.get("TEST_DATABASE_URL")
    with PostgresContainer(image) as pg:
        url = pg.get_connection_url()
        os.environ["TEST_DATABASE_URL"] = url
        try:
            command.upgrade(alembic_config(), "head")
            yield url
        finally:
            if previous is None:
                os.environ.pop("TEST_DATABASE_URL", None)
            else:
                os.environ["TEST_DATABASE_URL"] = previous


@pytest.fixture(scope="session")
def pg_engine(pg_url):
    engine = create_engine(pg_url, pool_size=12, max_overflow=4)
    yield engine
    engine.dispose()


@pytest.fixture
def pg_session_factory(pg_engine):
    return sessionmaker(bind=pg_engine, autoflush=False, autocommit=False)


# Empty tables and rewound sequences per test
@pytest.fixture(autouse=True)
def _clean_database(pg_engine):
    with pg_engine.begin() as conn:
        conn.execute(text(f"TRUNCATE {', '.join(_TABLES)} CASCADE"))
        for family in registry:
            conn.execute(text(f"ALTER SEQUENCE {family.counter_name} RESTART WITH 1"))
    yield


@pytest.fixture
def pg_session(pg_session_factory):
    session = pg_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def pg_user(pg_session):
    user = models.User(username="pg-owner", email="pg-owner@example.com")
    pg_session.add(user)
    pg_session.commit()
    return user
