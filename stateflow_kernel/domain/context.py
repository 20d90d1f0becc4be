"""
Transition context (``stateflow_kernel.domain.context``).

Responsibility
--------------
The append-only execution ledger for one transition attempt: current
state, the frozen delta, gate/action/skip history, lock snapshot, status
and terminal metadata.  It is the unit of serialization for pause/resume
(see ``stateflow_kernel.domain.snapshot``).

Architecture position
---------------------
**Kernel domain layer** -- pure, no I/O.  Mutated exclusively by the
transition orchestrator of the call stack that owns it.

Invariants enforced
-------------------
* Status lifecycle -- ``STATUS_TRANSITIONS`` defines the only legal status
  changes.  IN_PROGRESS may end in any terminal status or PAUSED; PAUSED
  may only return to IN_PROGRESS (resume); every other status is final.
* History lists are append-only and only grow while IN_PROGRESS.
* A replacement state is applied before its execution record is appended.
* Lock identity (key, acquired_at) is write-once per context.

Failure modes
-------------
* ``InvalidStatusTransitionError`` on an illegal status change.
* ``TransitionStateError`` when recording history outside IN_PROGRESS or
  re-recording a lock acquisition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence
from uuid import uuid4

from stateflow_kernel.domain.action import ActionOutcome
from stateflow_kernel.domain.gate import GateResult
from stateflow_kernel.domain.lock import LockState
from stateflow_kernel.domain.state import Delta, State, freeze_delta
from stateflow_kernel.exceptions import (
    InvalidStatusTransitionError,
    TransitionStateError,
)


# =========================================================================
# Status lifecycle
# =========================================================================


class TransitionStatus(str, Enum):
    """Lifecycle status of one transition attempt."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAUSED = "paused"
    STOPPED = "stopped"
    FAILED = "failed"
    SKIPPED_DUE_TO_LOCK = "skipped_due_to_lock"


STATUS_TRANSITIONS: dict[TransitionStatus, frozenset[TransitionStatus]] = {
    TransitionStatus.IN_PROGRESS: frozenset({
        TransitionStatus.COMPLETED,
        TransitionStatus.PAUSED,
        TransitionStatus.STOPPED,
        TransitionStatus.FAILED,
        TransitionStatus.SKIPPED_DUE_TO_LOCK,
    }),
    TransitionStatus.PAUSED: frozenset({TransitionStatus.IN_PROGRESS}),
    TransitionStatus.COMPLETED: frozenset(),
    TransitionStatus.STOPPED: frozenset(),
    TransitionStatus.FAILED: frozenset(),
    TransitionStatus.SKIPPED_DUE_TO_LOCK: frozenset(),
}

TERMINAL_STATUSES: frozenset[TransitionStatus] = frozenset({
    TransitionStatus.COMPLETED,
    TransitionStatus.STOPPED,
    TransitionStatus.FAILED,
    TransitionStatus.SKIPPED_DUE_TO_LOCK,
})


# =========================================================================
# History records
# =========================================================================


@dataclass(frozen=True)
class GateEvaluationRecord:
    """One evaluated gate.  ``action_identity`` is set for action guards."""

    gate_identity: str
    result: GateResult
    message: str | None
    is_action_gate: bool
    timestamp: datetime
    action_identity: str | None = None


@dataclass(frozen=True)
class ActionExecutionRecord:
    """One action that actually ran."""

    action_identity: str
    position: int
    outcome: ActionOutcome
    timestamp: datetime


@dataclass(frozen=True)
class ActionSkipRecord:
    """One action skipped because its guard did not ALLOW."""

    action_identity: str
    position: int
    reason: GateResult
    timestamp: datetime


@dataclass(frozen=True)
class FailureInfo:
    """Summary of the error that moved a context to FAILED."""

    error_type: str
    message: str
    code: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> FailureInfo:
        return cls(
            error_type=type(exc).__name__,
            message=str(exc),
            code=getattr(exc, "code", None),
        )


# =========================================================================
# TransitionContext
# =========================================================================


class TransitionContext:
    """Execution ledger for one transition attempt."""

    def __init__(
        self,
        initial_state: State,
        delta: Mapping[str, Any],
        *,
        transition_id: str | None = None,
    ) -> None:
        self._transition_id = transition_id or str(uuid4())
        self._initial_state = initial_state
        self._current_state = initial_state
        self._delta: Delta = freeze_delta(delta)
        self._status = TransitionStatus.IN_PROGRESS
        self._gate_evaluations: list[GateEvaluationRecord] = []
        self._action_executions: list[ActionExecutionRecord] = []
        self._action_skips: list[ActionSkipRecord] = []
        self._lock_state = LockState()
        self._terminal_metadata: Any = None
        self._failure: FailureInfo | None = None
        self._planned_actions: tuple[str, ...] = ()

    @classmethod
    def restore(
        cls,
        *,
        transition_id: str,
        initial_state: State,
        current_state: State,
        delta: Mapping[str, Any],
        status: TransitionStatus,
        gate_evaluations: Sequence[GateEvaluationRecord],
        action_executions: Sequence[ActionExecutionRecord],
        action_skips: Sequence[ActionSkipRecord],
        lock_state: LockState,
        terminal_metadata: Any = None,
        failure: FailureInfo | None = None,
        planned_actions: Sequence[str] = (),
    ) -> TransitionContext:
        """Rebuild a context from previously exported parts."""
        ctx = cls(initial_state, delta, transition_id=transition_id)
        ctx._current_state = current_state
        ctx._status = TransitionStatus(status)
        ctx._gate_evaluations = list(gate_evaluations)
        ctx._action_executions = list(action_executions)
        ctx._action_skips = list(action_skips)
        ctx._lock_state = lock_state
        ctx._terminal_metadata = terminal_metadata
        ctx._failure = failure
        ctx._planned_actions = tuple(planned_actions)
        return ctx

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def transition_id(self) -> str:
        return self._transition_id

    @property
    def initial_state(self) -> State:
        return self._initial_state

    @property
    def current_state(self) -> State:
        return self._current_state

    @property
    def delta(self) -> Delta:
        return self._delta

    @property
    def status(self) -> TransitionStatus:
        return self._status

    @property
    def gate_evaluations(self) -> tuple[GateEvaluationRecord, ...]:
        return tuple(self._gate_evaluations)

    @property
    def action_executions(self) -> tuple[ActionExecutionRecord, ...]:
        return tuple(self._action_executions)

    @property
    def action_skips(self) -> tuple[ActionSkipRecord, ...]:
        return tuple(self._action_skips)

    @property
    def lock_state(self) -> LockState:
        return self._lock_state

    @property
    def terminal_metadata(self) -> Any:
        return self._terminal_metadata

    @property
    def failure(self) -> FailureInfo | None:
        return self._failure

    @property
    def planned_actions(self) -> tuple[str, ...]:
        return self._planned_actions

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def is_paused(self) -> bool:
        return self._status is TransitionStatus.PAUSED

    def processed_actions(self) -> dict[int, str]:
        """Position -> identity for every action already executed or skipped."""
        processed = {r.position: r.action_identity for r in self._action_executions}
        processed.update({r.position: r.action_identity for r in self._action_skips})
        return processed

    def next_action_position(self) -> int:
        """Position of the first action not yet represented in history."""
        processed = self.processed_actions()
        return max(processed) + 1 if processed else 0

    # ------------------------------------------------------------------
    # Mutation (orchestrator only)
    # ------------------------------------------------------------------

    def plan_actions(self, identities: Sequence[str]) -> None:
        """Record the identities of the configured actions."""
        self._planned_actions = tuple(identities)

    def record_gate_evaluation(self, record: GateEvaluationRecord) -> None:
        self._require_in_progress("record gate evaluation")
        self._gate_evaluations.append(record)

    def record_action_execution(self, record: ActionExecutionRecord) -> None:
        self._require_in_progress("record action execution")
        if record.outcome.replacement_state is not None:
            self._current_state = record.outcome.replacement_state
        self._action_executions.append(record)

    def record_action_skip(self, record: ActionSkipRecord) -> None:
        self._require_in_progress("record action skip")
        self._action_skips.append(record)

    def record_lock_acquired(
        self, lock_key: str, acquired_at: datetime, ttl_seconds: int
    ) -> None:
        if self._lock_state.is_locked():
            raise TransitionStateError(
                self._transition_id, self._status.value, "re-record lock acquisition"
            )
        self._lock_state = LockState(
            lock_key=lock_key, acquired_at=acquired_at, ttl_seconds=ttl_seconds
        )

    def record_lock_renewed(self, ttl_seconds: int) -> None:
        if not self._lock_state.is_held():
            raise TransitionStateError(
                self._transition_id, self._status.value, "renew an unheld lock"
            )
        self._lock_state = self._lock_state.renewed(ttl_seconds)

    def record_lock_released(self, at: datetime) -> None:
        if self._lock_state.is_held():
            self._lock_state = self._lock_state.released(at)

    def mark_status(self, status: TransitionStatus, metadata: Any = None) -> None:
        """Move to ``status``; ``metadata`` is kept as terminal/pause metadata."""
        allowed = STATUS_TRANSITIONS[self._status]
        if status not in allowed:
            raise InvalidStatusTransitionError(self._status.value, status.value)
        self._status = status
        self._terminal_metadata = metadata

    def record_failure(self, exc: BaseException) -> None:
        self._failure = FailureInfo.from_exception(exc)
        self.mark_status(TransitionStatus.FAILED)

    def _require_in_progress(self, operation: str) -> None:
        if self._status is not TransitionStatus.IN_PROGRESS:
            raise TransitionStateError(
                self._transition_id, self._status.value, operation
            )

    def __repr__(self) -> str:
        return (
            f"TransitionContext(id={self._transition_id!r}, "
            f"status={self._status.value}, "
            f"gates={len(self._gate_evaluations)}, "
            f"executed={len(self._action_executions)}, "
            f"skipped={len(self._action_skips)})"
        )
