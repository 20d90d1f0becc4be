"""
Engine events (``stateflow_kernel.domain.events``).

Responsibility
--------------
Frozen event records emitted synchronously at every step boundary of a
transition, and the ``EventDispatcher`` sink protocol that receives them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  Dispatch implementations
live in ``stateflow_services.event_dispatch``.

Each event renders ``log_fields()`` -- a flat dict of primitives safe to
pass as logging ``extra`` or to a trace timeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Protocol, runtime_checkable

from stateflow_kernel.domain.action import Action, ActionOutcome
from stateflow_kernel.domain.gate import Gate, GateResult
from stateflow_kernel.domain.state import State

if TYPE_CHECKING:
    from stateflow_kernel.domain.context import TransitionContext


@dataclass(frozen=True, kw_only=True)
class Event:
    """Base for all engine events."""

    name: ClassVar[str] = "event"

    transition_id: str
    occurred_at: datetime

    def log_fields(self) -> dict[str, Any]:
        return {
            "event": self.name,
            "transition_id": self.transition_id,
            "occurred_at": self.occurred_at.isoformat(),
        }


@runtime_checkable
class EventDispatcher(Protocol):
    """Synchronous, fire-and-forget event sink."""

    def dispatch(self, event: Event) -> None:
        ...


# ---------------------------------------------------------------------------
# Transition lifecycle
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class TransitionStarting(Event):
    name: ClassVar[str] = "transition_starting"

    current_state: State
    delta: Mapping[str, Any]

    def log_fields(self) -> dict[str, Any]:
        return {**super().log_fields(), "delta_fields": sorted(self.delta)}


@dataclass(frozen=True, kw_only=True)
class TransitionCompleted(Event):
    name: ClassVar[str] = "transition_completed"

    final_state: State
    context: TransitionContext


@dataclass(frozen=True, kw_only=True)
class TransitionPaused(Event):
    name: ClassVar[str] = "transition_paused"

    current_state: State
    context: TransitionContext
    metadata: Any = None


@dataclass(frozen=True, kw_only=True)
class TransitionStopped(Event):
    name: ClassVar[str] = "transition_stopped"

    current_state: State
    context: TransitionContext
    metadata: Any = None


@dataclass(frozen=True, kw_only=True)
class TransitionFailed(Event):
    name: ClassVar[str] = "transition_failed"

    current_state: State
    context: TransitionContext
    error: BaseException

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
        }


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class GateEvaluating(Event):
    name: ClassVar[str] = "gate_evaluating"

    gate: Gate
    gate_identity: str
    current_state: State
    delta: Mapping[str, Any]
    is_action_gate: bool

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "gate": self.gate_identity,
            "is_action_gate": self.is_action_gate,
        }


@dataclass(frozen=True, kw_only=True)
class GateEvaluated(Event):
    name: ClassVar[str] = "gate_evaluated"

    gate: Gate
    gate_identity: str
    result: GateResult
    gate_message: str | None
    is_action_gate: bool

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "gate": self.gate_identity,
            "result": self.result.value,
            "gate_message": self.gate_message,
            "is_action_gate": self.is_action_gate,
        }


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class ActionExecuting(Event):
    name: ClassVar[str] = "action_executing"

    action: Action
    action_identity: str
    position: int
    current_state: State

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "action": self.action_identity,
            "position": self.position,
        }


@dataclass(frozen=True, kw_only=True)
class ActionExecuted(Event):
    name: ClassVar[str] = "action_executed"

    action: Action
    action_identity: str
    position: int
    outcome: ActionOutcome

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "action": self.action_identity,
            "position": self.position,
            "signal": self.outcome.signal.value,
            "replaced_state": self.outcome.replacement_state is not None,
        }


@dataclass(frozen=True, kw_only=True)
class ActionSkipped(Event):
    name: ClassVar[str] = "action_skipped"

    action: Action
    action_identity: str
    position: int
    gate_result: GateResult

    def log_fields(self) -> dict[str, Any]:
        return {
            **super().log_fields(),
            "action": self.action_identity,
            "position": self.position,
            "result": self.gate_result.value,
        }


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class LockEvent(Event):
    name: ClassVar[str] = "lock_event"

    lock_key: str
    state: State

    def log_fields(self) -> dict[str, Any]:
        return {**super().log_fields(), "lock_key": self.lock_key}


@dataclass(frozen=True, kw_only=True)
class LockAcquiring(LockEvent):
    name: ClassVar[str] = "lock_acquiring"


@dataclass(frozen=True, kw_only=True)
class LockAcquired(LockEvent):
    name: ClassVar[str] = "lock_acquired"

    ttl_seconds: int

    def log_fields(self) -> dict[str, Any]:
        return {**super().log_fields(), "ttl_seconds": self.ttl_seconds}


@dataclass(frozen=True, kw_only=True)
class LockReleased(LockEvent):
    name: ClassVar[str] = "lock_released"


@dataclass(frozen=True, kw_only=True)
class LockFailed(LockEvent):
    name: ClassVar[str] = "lock_failed"

    reason: str

    def log_fields(self) -> dict[str, Any]:
        return {**super().log_fields(), "reason": self.reason}


@dataclass(frozen=True, kw_only=True)
class LockRestored(LockEvent):
    name: ClassVar[str] = "lock_restored"


@dataclass(frozen=True, kw_only=True)
class LockLost(LockEvent):
    name: ClassVar[str] = "lock_lost"
