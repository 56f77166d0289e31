"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with test
fallbacks (SQLite in-memory under pytest) and exposes session helpers.
"""
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reqmgmt.utils.runtime import explicit_test_database_url, is_pytest_runtime

logger = logging.getLogger(__name__)

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    components = {
        "POSTGRES_USER": os.getenv("POSTGRES_USER"),
        "POSTGRES_PASSWORD": os.getenv("POSTGRES_PASSWORD"),
        "POSTGRES_HOST": os.getenv("POSTGRES_HOST"),
        "POSTGRES_PORT": os.getenv("POSTGRES_PORT"),
        "POSTGRES_DB": os.getenv("POSTGRES_DB"),
    }
    missing = [name for name, value in components.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return (
        f"postgresql://{components['POSTGRES_USER']}:{components['POSTGRES_PASSWORD']}"
        f"@{components['POSTGRES_HOST']}:{components['POSTGRES_PORT']}/{components['POSTGRES_DB']}"
    )


def resolve_database_url() -> tuple[str, dict]:
    """Return the URL and engine kwargs for the current runtime.

    Test override strategy:
    1. An explicit test database (REQMGMT_TEST_DB / TEST_DATABASE_URL) wins.
    2. Else under pytest, an in-memory SQLite database on a StaticPool so the
       schema persists across connections.
    3. Else the configured deployment database.
    """
    explicit = explicit_test_database_url()
    if explicit:
        kwargs = {"connect_args": {"check_same_thread": False}} if explicit.startswith("sqlite") else {}
        return explicit, kwargs
    if is_pytest_runtime():
        return SQLITE_MEMORY_URL, {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return _get_database_url(), {}


def build_engine(url: str | None = None, **kwargs):
    """Create an engine; with no URL the runtime-resolved database is used."""
    if url is None:
        url, resolved = resolve_database_url()
        kwargs = {**resolved, **kwargs}
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        # Schema is created eagerly for SQLite; PostgreSQL goes through Alembic.
        from reqmgmt.db import models  # local import to avoid circular import at module load

        models.Base.metadata.create_all(bind=engine)
    logger.debug("Database engine ready for dialect %s", engine.dialect.name)
    return engine


_engine = None
_SessionLocal = None


def get_engine():
    global _engine
    if _engine is None:
        _engine = build_engine()
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def reset_engine_for_tests() -> None:
    """Dispose the cached engine so the next use re-reads the environment."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_db():
    """Yield a database session and close it afterwards."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
