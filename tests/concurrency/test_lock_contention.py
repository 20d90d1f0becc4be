"""
Mutual exclusion under real thread contention.

Several workers, each with its own engine and lock owner id, start the
same transition at once.  The winner's only action holds the lock until
every other worker has been refused, so exactly one transition may run.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from stateflow_kernel.domain.action import Action, ActionOutcome
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.context import TransitionStatus
from stateflow_kernel.exceptions import LockAcquisitionError
from stateflow_kernel.locks.database import SqlAlchemyLockBackend
from stateflow_kernel.locks.memory import InMemoryLockBackend
from stateflow_services.engine import StateFlow

from tests.helpers import draft_order, fixed_provider, order_key

pytestmark = pytest.mark.slow_locks

WORKERS = 8


def _contend(backend_for, workers: int = WORKERS):
    barrier = Barrier(workers)
    losers_done = threading.Event()
    guard = threading.Lock()
    failures: list[LockAcquisitionError] = []
    runs: list[str] = []

    class HoldLock(Action):
        def execute(self, current_state, delta, context):
            with guard:
                runs.append(context.transition_id)
            losers_done.wait(timeout=10)
            return ActionOutcome.continue_()

    def attempt(i: int):
        engine = StateFlow(
            fixed_provider(Configuration(actions=[HoldLock()])),
            lock_backend=backend_for(f"worker-{i}"),
            lock_key_provider=order_key,
        )
        orchestrator = engine.transition(draft_order(), {"status": "paid"})
        barrier.wait(timeout=10)
        try:
            return orchestrator.run().status
        except LockAcquisitionError as exc:
            with guard:
                failures.append(exc)
                if len(failures) == workers - 1:
                    losers_done.set()
            return None

    with ThreadPoolExecutor(max_workers=workers) as pool:
        statuses = list(pool.map(attempt, range(workers)))

    return statuses, failures, runs


class TestLockContention:
    def test_in_memory_backend(self):
        table = InMemoryLockBackend(owner="seed")
        statuses, failures, runs = _contend(table.for_owner)

        assert statuses.count(TransitionStatus.COMPLETED) == 1
        assert len(failures) == WORKERS - 1
        assert {f.lock_key for f in failures} == {"order:1"}
        assert len(runs) == 1
        assert not table.exists("order:1")

    def test_sqlalchemy_backend(self, sqlite_session_factory):
        def backend_for(owner):
            return SqlAlchemyLockBackend(sqlite_session_factory, owner=owner)

        statuses, failures, runs = _contend(backend_for)

        assert statuses.count(TransitionStatus.COMPLETED) == 1
        assert len(failures) == WORKERS - 1
        assert len(runs) == 1
        assert not backend_for("observer").exists("order:1")

    def test_distinct_keys_do_not_contend(self):
        table = InMemoryLockBackend()
        done = []

        def attempt(order_id: int):
            engine = StateFlow(
                fixed_provider(Configuration()),
                lock_backend=table.for_owner(),
                lock_key_provider=order_key,
            )
            done.append(engine.transition(draft_order(id=order_id), {}).run().status)

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(attempt, range(16)))

        assert done.count(TransitionStatus.COMPLETED) == 16
