"""
Snapshot export / restore tests.

Restoring an exported context must yield equal state mappings, status and
history lists, for PAUSED and terminal contexts alike, and survive a trip
through JSON text (which is how checkpoints are stored).
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from stateflow_kernel.domain.action import ActionOutcome
from stateflow_kernel.domain.context import (
    ActionExecutionRecord,
    ActionSkipRecord,
    GateEvaluationRecord,
    TransitionContext,
    TransitionStatus,
)
from stateflow_kernel.domain.gate import GateResult
from stateflow_kernel.domain.snapshot import (
    SNAPSHOT_SCHEMA_VERSION,
    export_context,
    restore_context,
)
from stateflow_kernel.domain.state import MappingState, MappingStateFactory
from stateflow_kernel.exceptions import (
    SnapshotIntegrityError,
    UnsupportedSnapshotVersionError,
)

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

field_values = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**9, max_value=10**9),
    st.text(max_size=12),
)
state_mappings = st.dictionaries(
    st.text(alphabet="abcdefghij_", min_size=1, max_size=8), field_values, max_size=5
)
metadata_values = st.one_of(st.none(), st.dictionaries(st.sampled_from(["job_id", "note"]), field_values))


@st.composite
def contexts(draw):
    ctx = TransitionContext(MappingState(draw(state_mappings)), draw(state_mappings))
    if draw(st.booleans()):
        ctx.record_lock_acquired("order:1", T0, draw(st.integers(min_value=1, max_value=3600)))

    for i, result in enumerate(draw(st.lists(st.sampled_from(list(GateResult)), max_size=3))):
        ctx.record_gate_evaluation(
            GateEvaluationRecord(
                gate_identity=f"Gate{i}",
                result=result,
                message=draw(st.one_of(st.none(), st.text(max_size=10))),
                is_action_gate=draw(st.booleans()),
                timestamp=T0 + timedelta(seconds=i),
                action_identity=None,
            )
        )

    for position in range(draw(st.integers(min_value=0, max_value=4))):
        when = T0 + timedelta(minutes=position)
        if draw(st.booleans()):
            replacement = (
                MappingState(draw(state_mappings)) if draw(st.booleans()) else None
            )
            ctx.record_action_execution(
                ActionExecutionRecord(
                    action_identity=f"Action{position}",
                    position=position,
                    outcome=ActionOutcome.continue_(replacement, draw(metadata_values)),
                    timestamp=when,
                )
            )
        else:
            ctx.record_action_skip(
                ActionSkipRecord(
                    action_identity=f"Action{position}",
                    position=position,
                    reason=draw(st.sampled_from([GateResult.DENY, GateResult.SKIP_IDEMPOTENT])),
                    timestamp=when,
                )
            )

    final = draw(
        st.sampled_from(
            [
                TransitionStatus.IN_PROGRESS,
                TransitionStatus.PAUSED,
                TransitionStatus.COMPLETED,
                TransitionStatus.STOPPED,
                TransitionStatus.FAILED,
            ]
        )
    )
    if final is TransitionStatus.FAILED:
        ctx.record_failure(RuntimeError("boom"))
    elif final is not TransitionStatus.IN_PROGRESS:
        ctx.mark_status(final, draw(metadata_values))
    ctx.plan_actions([f"Action{i}" for i in range(5)])
    return ctx


def _assert_equivalent(original: TransitionContext, restored: TransitionContext) -> None:
    assert restored.transition_id == original.transition_id
    assert restored.status is original.status
    assert dict(restored.current_state.to_mapping()) == dict(original.current_state.to_mapping())
    assert dict(restored.initial_state.to_mapping()) == dict(original.initial_state.to_mapping())
    assert dict(restored.delta) == dict(original.delta)
    assert restored.gate_evaluations == original.gate_evaluations
    assert restored.action_executions == original.action_executions
    assert restored.action_skips == original.action_skips
    assert restored.lock_state == original.lock_state
    assert restored.terminal_metadata == original.terminal_metadata
    assert restored.failure == original.failure
    assert restored.planned_actions == original.planned_actions


@settings(max_examples=75, deadline=None)
@given(contexts())
def test_round_trip_preserves_context(ctx):
    """Export -> JSON text -> restore yields an element-wise equal context."""
    data = json.loads(json.dumps(export_context(ctx)))
    restored = restore_context(data, MappingStateFactory())
    _assert_equivalent(ctx, restored)


@settings(max_examples=25, deadline=None)
@given(contexts())
def test_export_is_deterministic(ctx):
    assert export_context(ctx) == export_context(ctx)


class TestSnapshotFormat:
    @pytest.fixture
    def paused(self):
        ctx = TransitionContext(MappingState({"id": 1, "status": "draft"}), {"status": "paid"})
        ctx.record_lock_acquired("order:1", T0, 300)
        ctx.record_action_execution(
            ActionExecutionRecord("AsyncKickoff", 0, ActionOutcome.pause(metadata={"job_id": 42}), T0)
        )
        ctx.mark_status(TransitionStatus.PAUSED, {"job_id": 42})
        return ctx

    def test_self_describing_fields(self, paused):
        data = export_context(paused)
        assert data["schema_version"] == SNAPSHOT_SCHEMA_VERSION
        assert data["status"] == "paused"
        assert data["current_state"] == {"id": 1, "status": "draft"}
        assert data["delta"] == {"status": "paid"}
        assert data["action_executions"][0]["action"] == "AsyncKickoff"
        assert data["action_executions"][0]["signal"] == "pause"
        assert data["lock"]["key"] == "order:1"
        assert data["lock"]["released_at"] is None
        assert data["terminal_metadata"] == {"job_id": 42}
        assert len(data["snapshot_hash"]) == 64

    def test_tampered_snapshot_rejected(self, paused):
        data = export_context(paused)
        data["current_state"]["status"] = "paid"
        with pytest.raises(SnapshotIntegrityError) as exc_info:
            restore_context(data, MappingStateFactory())
        assert exc_info.value.transition_id == paused.transition_id

    def test_unknown_schema_version_rejected(self, paused):
        data = export_context(paused)
        data["schema_version"] = 99
        with pytest.raises(UnsupportedSnapshotVersionError):
            restore_context(data, MappingStateFactory())

    def test_editing_export_leaves_context_untouched(self, paused):
        data = export_context(paused)
        data["terminal_metadata"]["job_id"] = 7
        data["action_executions"][0]["metadata"]["job_id"] = 7

        assert paused.terminal_metadata == {"job_id": 42}
        assert paused.action_executions[0].outcome.metadata == {"job_id": 42}
        assert export_context(paused)["terminal_metadata"] == {"job_id": 42}

    def test_restored_context_detached_from_input(self, paused):
        data = export_context(paused)
        restored = restore_context(data, MappingStateFactory())
        data["terminal_metadata"]["job_id"] = 7
        data["action_executions"][0]["metadata"]["job_id"] = 7

        assert restored.terminal_metadata == {"job_id": 42}
        assert restored.action_executions[0].outcome.metadata == {"job_id": 42}

    def test_restored_paused_context_is_resumable(self, paused):
        restored = restore_context(export_context(paused), MappingStateFactory())
        assert restored.is_paused
        assert restored.lock_state.is_held()
        assert restored.next_action_position() == 1
