"""
Pytest fixtures for the StateFlow test suite.

Provides:
- Structured-log configuration and capture
- Deterministic clock, in-memory lock backend and recording event sink
- An engine factory wired with those collaborators
- SQLite-backed session factory for persistence tests
"""

import json
import logging
from io import StringIO

import pytest

from stateflow_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from stateflow_kernel.domain.clock import DeterministicClock
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.lock import LockSettings
from stateflow_kernel.locks.memory import InMemoryLockBackend
from stateflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stateflow_services.engine import StateFlow
from stateflow_services.event_dispatch import RecordingEventDispatcher

from tests.helpers import fixed_provider, order_key


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture stateflow logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, make_engine):
            make_engine(configuration).transition(state, delta).run()
            logs = captured_logs()
            assert any(r["message"] == "transition_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stateflow")
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
# Engine collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for reproducible timestamps."""
    return DeterministicClock()


@pytest.fixture
def lock_backend(deterministic_clock):
    """In-memory lock backend sharing the deterministic clock."""
    return InMemoryLockBackend(clock=deterministic_clock, owner="worker-a")


@pytest.fixture
def recorder():
    return RecordingEventDispatcher()


@pytest.fixture
def make_engine(lock_backend, recorder, deterministic_clock):
    """
    Build a StateFlow whose provider always returns ``configuration``.

    Locking defaults to FAIL_FAST on ``order:{id}`` through ``lock_backend``;
    pass ``lock_backend=None`` to disable it.
    """

    def _make(
        configuration: Configuration,
        *,
        lock_settings: LockSettings | None = None,
        lock_backend=lock_backend,
        event_dispatcher=recorder,
        lock_key_provider=order_key,
    ) -> StateFlow:
        return StateFlow(
            fixed_provider(configuration),
            lock_backend=lock_backend,
            lock_key_provider=lock_key_provider if lock_backend is not None else None,
            lock_settings=lock_settings,
            event_dispatcher=event_dispatcher,
            clock=deterministic_clock,
        )

    return _make


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def sqlite_session_factory(tmp_path):
    """
    File-backed SQLite database with StateFlow tables created.

    A file (not ``:memory:``) so that every connection in the pool sees the
    same tables, which the concurrency tests rely on.
    """
    init_engine_from_url(f"sqlite:///{tmp_path / 'stateflow.db'}")
    create_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def session(sqlite_session_factory):
    """Session whose changes are rolled back after the test."""
    sess = sqlite_session_factory()
    yield sess
    sess.rollback()
    sess.close()
