"""
Core behavioural properties of the transition orchestrator.

Each test pins one guarantee: gate short-circuit, action order, lock
retention on pause, lock release on stop, guard skips, resume continuity,
and end-to-end order flows.
"""

import json

import pytest

from stateflow_kernel.domain.action import ExecutionSignal
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.context import TransitionStatus
from stateflow_kernel.domain.events import ActionExecuted
from stateflow_kernel.domain.gate import GateResult
from stateflow_kernel.domain.snapshot import export_context
from stateflow_kernel.domain.state import MappingState, MappingStateFactory
from stateflow_kernel.exceptions import LockAcquisitionError

from tests.helpers import (
    ActionCatalog,
    AlreadyDone,
    AlwaysAllow,
    AlwaysDeny,
    AsyncKickoff,
    Guarded,
    Halt,
    NeverReached,
    NoOp,
    SetField,
    Tracked,
    draft_order,
)


# ---------------------------------------------------------------------------
# Gate short-circuit
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("first_gate", [AlwaysDeny(), AlreadyDone()])
def test_first_gate_denial_runs_no_actions(make_engine, lock_backend, first_gate):
    journal: list[str] = []
    later_gate = AlwaysAllow()
    configuration = Configuration(
        transition_gates=[first_gate, later_gate],
        actions=[Tracked("a", journal), Tracked("b", journal)],
    )

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.STOPPED
    assert journal == []
    assert ctx.action_executions == ()
    assert len(ctx.gate_evaluations) == 1
    assert later_gate.calls == 0
    assert not lock_backend.exists("order:1")


def test_idempotent_skip_is_tagged_distinctly(make_engine):
    configuration = Configuration(transition_gates=[AlreadyDone()], actions=[NoOp()])
    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.STOPPED
    assert ctx.gate_evaluations[0].result is GateResult.SKIP_IDEMPOTENT
    assert ctx.terminal_metadata == {
        "gate": "AlreadyDone",
        "result": "skip_idempotent",
        "message": "already applied",
    }


# ---------------------------------------------------------------------------
# Action order
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("count", [1, 3, 7])
def test_actions_run_in_configured_order(make_engine, count):
    journal: list[str] = []
    names = [f"step{i}" for i in range(count)]
    configuration = Configuration(actions=[Tracked(n, journal) for n in names])

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.COMPLETED
    assert journal == names
    assert [r.action_identity for r in ctx.action_executions] == names
    assert [r.position for r in ctx.action_executions] == list(range(count))
    assert all(r.outcome.signal is ExecutionSignal.CONTINUE for r in ctx.action_executions)


# ---------------------------------------------------------------------------
# Lock retention across PAUSE and STOP
# ---------------------------------------------------------------------------


def test_pause_keeps_lock(make_engine, lock_backend):
    configuration = Configuration(actions=[NoOp(), AsyncKickoff(), NeverReached()])

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.PAUSED
    assert lock_backend.exists("order:1")
    assert ctx.lock_state.is_held()


def test_stop_releases_lock(make_engine, lock_backend):
    configuration = Configuration(actions=[NoOp(), Halt(), NeverReached()])

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.STOPPED
    assert not lock_backend.exists("order:1")
    assert ctx.terminal_metadata == {"reason": "halted"}
    assert [r.action_identity for r in ctx.action_executions] == ["NoOp", "Halt"]


# ---------------------------------------------------------------------------
# Guard deny skips only that action
# ---------------------------------------------------------------------------


def test_guard_denial_skips_only_that_action(make_engine):
    journal: list[str] = []
    configuration = Configuration(
        actions=[
            Tracked("before", journal),
            Guarded("guarded", AlwaysDeny(), journal),
            Tracked("after", journal),
        ]
    )

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.COMPLETED
    assert journal == ["before", "after"]
    assert [s.action_identity for s in ctx.action_skips] == ["guarded"]
    assert ctx.action_skips[0].reason is GateResult.DENY
    assert ctx.action_skips[0].position == 1
    assert "guarded" not in [r.action_identity for r in ctx.action_executions]
    guard_record = ctx.gate_evaluations[0]
    assert guard_record.is_action_gate
    assert guard_record.action_identity == "guarded"


def test_guard_allow_runs_action(make_engine):
    journal: list[str] = []
    configuration = Configuration(actions=[Guarded("guarded", AlwaysAllow(), journal)])

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert journal == ["guarded"]
    assert ctx.action_skips == ()


# ---------------------------------------------------------------------------
# Resume continuity through a snapshot
# ---------------------------------------------------------------------------


def test_resume_from_snapshot_runs_only_remaining_actions(make_engine, lock_backend):
    journal: list[str] = []
    catalog = ActionCatalog(
        {
            "first": lambda: Tracked("first", journal),
            "kickoff": lambda: Tracked("kickoff", journal, signal="pause"),
            "second": lambda: Tracked("second", journal),
            "third": lambda: Tracked("third", journal),
        }
    )
    configuration = Configuration(
        actions=[catalog.from_identity(n) for n in ("first", "kickoff", "second", "third")]
    )
    engine = make_engine(configuration)

    paused = engine.transition(draft_order(), {"status": "paid"}).run()
    assert paused.status is TransitionStatus.PAUSED
    assert journal == ["first", "kickoff"]

    snapshot = json.loads(json.dumps(export_context(paused)))
    catalog.requested.clear()
    resumed = engine.from_snapshot(snapshot, MappingStateFactory(), action_factory=catalog).resume()

    assert resumed.status is TransitionStatus.COMPLETED
    assert journal == ["first", "kickoff", "second", "third"]
    assert [r.action_identity for r in resumed.action_executions] == [
        "first",
        "kickoff",
        "second",
        "third",
    ]
    assert catalog.requested == ["first", "kickoff", "second", "third"]
    assert not lock_backend.exists("order:1")


# ---------------------------------------------------------------------------
# End-to-end flows
# ---------------------------------------------------------------------------


def test_single_gate_single_action_completes(make_engine):
    configuration = Configuration(
        transition_gates=[AlwaysAllow()],
        actions=[SetField("status", "processing")],
    )
    engine = make_engine(configuration, lock_backend=None)

    ctx = engine.transition(MappingState({"status": "draft"}), {"status": "processing"}).run()

    assert ctx.status is TransitionStatus.COMPLETED
    assert ctx.current_state.to_mapping() == {"status": "processing"}
    assert [g.result for g in ctx.gate_evaluations] == [GateResult.ALLOW]
    assert [r.outcome.signal for r in ctx.action_executions] == [ExecutionSignal.CONTINUE]


def test_denied_transition_stops(make_engine):
    configuration = Configuration(transition_gates=[AlwaysDeny()])

    ctx = make_engine(configuration).transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.STOPPED
    assert [g.result for g in ctx.gate_evaluations] == [GateResult.DENY]
    assert ctx.gate_evaluations[0].message == "not allowed"
    assert ctx.action_executions == ()


def test_pause_then_resume_runs_remaining_action(make_engine, lock_backend, recorder):
    configuration = Configuration(actions=[NoOp(), AsyncKickoff(), NeverReached()])
    engine = make_engine(configuration)

    ctx = engine.transition(draft_order(), {"status": "paid"}).run()

    assert ctx.status is TransitionStatus.PAUSED
    assert len(ctx.action_executions) == 2
    assert ctx.terminal_metadata == {"job_id": 42}
    assert lock_backend.exists("order:1")

    recorder.clear()
    resumed = engine.from_context(ctx).resume()

    assert resumed.status is TransitionStatus.COMPLETED
    executed_now = [e.action_identity for e in recorder.of_type(ActionExecuted)]
    assert executed_now == ["NeverReached"]
    assert not lock_backend.exists("order:1")


def test_fail_fast_on_held_lock(make_engine, lock_backend):
    configuration = Configuration(transition_gates=[AlwaysAllow()], actions=[NoOp()])
    assert lock_backend.for_owner("worker-b").acquire("order:1", 300)

    orchestrator = make_engine(configuration).transition(draft_order(), {"status": "paid"})
    with pytest.raises(LockAcquisitionError) as exc_info:
        orchestrator.run()

    assert exc_info.value.lock_key == "order:1"
    assert exc_info.value.strategy == "fail_fast"
    ctx = orchestrator.context
    assert ctx.gate_evaluations == ()
    assert ctx.action_executions == ()
    assert ctx.status is TransitionStatus.IN_PROGRESS
    assert not ctx.lock_state.is_locked()
