"""
Pytest fixtures for the studio ledger test suite.

Provides:
- Structured logging configured once per session, with per-test log capture
- A DeterministicClock fixed on a known studio day
- In-memory SQLite sessions with every table created
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from studio_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from studio_kernel.domain.clock import DeterministicClock
from studio_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Reference day used by tests that do not care about a specific date
TEST_AS_OF = date(2025, 3, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture studio_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            BalanceAuditEngine().audit(...)
            logs = captured_logs()
            assert any(r["message"] == "balance_audit_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("studio_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed at noon UTC on TEST_AS_OF."""
    return DeterministicClock.on(TEST_AS_OF)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session():
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite://")
    create_tables()
    db_session = get_session()
    yield db_session
    db_session.rollback()
    db_session.close()
    drop_tables()
    reset_engine()
