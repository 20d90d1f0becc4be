"""
Context snapshots (``stateflow_kernel.domain.snapshot``).

Responsibility
--------------
Exports a ``TransitionContext`` to a self-describing, JSON-compatible dict
and rebuilds it.  Gates and actions are referenced by identity string;
concrete states are rebuilt through a caller-supplied ``StateFactory``.

Architecture position
---------------------
**Kernel domain layer** -- pure transformation, no I/O.  Persistence of
snapshots is ``stateflow_kernel.models.checkpoint``.

Invariants enforced
-------------------
* ``snapshot_hash`` is the SHA-256 of the canonical JSON of every other
  key; ``restore_context`` refuses a snapshot whose hash does not match.
* Restoring an exported context yields equal state mappings, status and
  history lists.
* Outcome and terminal metadata are deep-copied in both directions; a
  snapshot never aliases a live context.

Failure modes
-------------
* ``UnsupportedSnapshotVersionError`` -- unknown ``schema_version``.
* ``SnapshotIntegrityError`` -- payload was altered after export.
* ``TypeError`` from hashing -- action metadata is not JSON-compatible.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Mapping

from stateflow_kernel.domain.action import ActionOutcome, ExecutionSignal
from stateflow_kernel.domain.context import (
    ActionExecutionRecord,
    ActionSkipRecord,
    FailureInfo,
    GateEvaluationRecord,
    TransitionContext,
    TransitionStatus,
)
from stateflow_kernel.domain.gate import GateResult
from stateflow_kernel.domain.lock import LockState
from stateflow_kernel.domain.state import State, StateFactory
from stateflow_kernel.exceptions import (
    SnapshotIntegrityError,
    UnsupportedSnapshotVersionError,
)
from stateflow_kernel.utils.hashing import hash_snapshot

SNAPSHOT_SCHEMA_VERSION = 1


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _state_mapping(state: State | None) -> dict[str, Any] | None:
    return dict(state.to_mapping()) if state is not None else None


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_context(context: TransitionContext) -> dict[str, Any]:
    """Export ``context`` to a JSON-compatible snapshot dict."""
    lock = context.lock_state
    failure = context.failure
    snapshot: dict[str, Any] = {
        "schema_version": SNAPSHOT_SCHEMA_VERSION,
        "transition_id": context.transition_id,
        "status": context.status.value,
        "initial_state": _state_mapping(context.initial_state),
        "current_state": _state_mapping(context.current_state),
        "delta": dict(context.delta),
        "gate_evaluations": [
            {
                "gate": r.gate_identity,
                "result": r.result.value,
                "message": r.message,
                "is_action_gate": r.is_action_gate,
                "action": r.action_identity,
                "timestamp": _ts(r.timestamp),
            }
            for r in context.gate_evaluations
        ],
        "action_executions": [
            {
                "action": r.action_identity,
                "position": r.position,
                "signal": r.outcome.signal.value,
                "replacement_state": _state_mapping(r.outcome.replacement_state),
                "metadata": copy.deepcopy(r.outcome.metadata),
                "timestamp": _ts(r.timestamp),
            }
            for r in context.action_executions
        ],
        "action_skips": [
            {
                "action": r.action_identity,
                "position": r.position,
                "reason": r.reason.value,
                "timestamp": _ts(r.timestamp),
            }
            for r in context.action_skips
        ],
        "lock": {
            "key": lock.lock_key,
            "acquired_at": _ts(lock.acquired_at),
            "ttl_seconds": lock.ttl_seconds,
            "released_at": _ts(lock.released_at),
        },
        "terminal_metadata": copy.deepcopy(context.terminal_metadata),
        "failure": (
            {
                "type": failure.error_type,
                "message": failure.message,
                "code": failure.code,
            }
            if failure is not None
            else None
        ),
        "planned_actions": list(context.planned_actions),
    }
    snapshot["snapshot_hash"] = hash_snapshot(snapshot)
    return snapshot


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


def verify_snapshot(data: Mapping[str, Any]) -> None:
    """Check schema version and integrity hash of a snapshot."""
    version = data.get("schema_version")
    if version != SNAPSHOT_SCHEMA_VERSION:
        raise UnsupportedSnapshotVersionError(version, SNAPSHOT_SCHEMA_VERSION)
    expected = data.get("snapshot_hash", "")
    actual = hash_snapshot(dict(data))
    if expected != actual:
        raise SnapshotIntegrityError(
            str(data.get("transition_id")), str(expected), actual
        )


def restore_context(
    data: Mapping[str, Any], state_factory: StateFactory
) -> TransitionContext:
    """Rebuild a TransitionContext from ``export_context`` output."""
    verify_snapshot(data)

    def build_state(mapping: Mapping[str, Any] | None) -> State | None:
        return state_factory.from_mapping(mapping) if mapping is not None else None

    gate_evaluations = [
        GateEvaluationRecord(
            gate_identity=g["gate"],
            result=GateResult(g["result"]),
            message=g.get("message"),
            is_action_gate=bool(g["is_action_gate"]),
            timestamp=_parse_ts(g["timestamp"]),
            action_identity=g.get("action"),
        )
        for g in data["gate_evaluations"]
    ]
    action_executions = [
        ActionExecutionRecord(
            action_identity=a["action"],
            position=int(a["position"]),
            outcome=ActionOutcome(
                signal=ExecutionSignal(a["signal"]),
                replacement_state=build_state(a.get("replacement_state")),
                metadata=copy.deepcopy(a.get("metadata")),
            ),
            timestamp=_parse_ts(a["timestamp"]),
        )
        for a in data["action_executions"]
    ]
    action_skips = [
        ActionSkipRecord(
            action_identity=s["action"],
            position=int(s["position"]),
            reason=GateResult(s["reason"]),
            timestamp=_parse_ts(s["timestamp"]),
        )
        for s in data["action_skips"]
    ]

    lock = data.get("lock") or {}
    lock_state = LockState(
        lock_key=lock.get("key"),
        acquired_at=_parse_ts(lock.get("acquired_at")),
        ttl_seconds=lock.get("ttl_seconds"),
        released_at=_parse_ts(lock.get("released_at")),
    )

    failure_data = data.get("failure")
    failure = (
        FailureInfo(
            error_type=failure_data["type"],
            message=failure_data["message"],
            code=failure_data.get("code"),
        )
        if failure_data
        else None
    )

    return TransitionContext.restore(
        transition_id=data["transition_id"],
        initial_state=build_state(data["initial_state"]),
        current_state=build_state(data["current_state"]),
        delta=data["delta"],
        status=TransitionStatus(data["status"]),
        gate_evaluations=gate_evaluations,
        action_executions=action_executions,
        action_skips=action_skips,
        lock_state=lock_state,
        terminal_metadata=copy.deepcopy(data.get("terminal_metadata")),
        failure=failure,
        planned_actions=data.get("planned_actions", ()),
    )
