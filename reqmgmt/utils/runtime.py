"""Runtime environment helpers for guarding test-only behavior."""

import os
import sys


def is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while an individual test is running,
    so module import time (e.g. when creating the engine) may not have it yet.
    The presence of the pytest package in ``sys.modules`` is reliable once
    pytest has initialized collection. ``PYTEST_RUNNING=1`` forces the answer.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    # During collection pytest is already imported
    if "pytest" in sys.modules:
        return True
    return False


def explicit_test_database_url() -> str | None:
    """Return the database URL a test run asked for explicitly, if any.

    ``REQMGMT_TEST_DB`` wins over ``TEST_DATABASE_URL`` (set by the e2e
    fixtures once a Postgres container is up).
    """
    return os.getenv("REQMGMT_TEST_DB") or os.getenv("TEST_DATABASE_URL") or None
