"""
Action types (``stateflow_kernel.domain.action``).

Responsibility
--------------
The ``Action`` interface, the ``ExecutionSignal`` an action returns, and
the ``ActionOutcome`` value carrying signal, optional replacement state
and opaque metadata.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* The engine applies ``replacement_state`` verbatim; no merging.
* An outcome without a replacement state leaves the current state as-is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Protocol, runtime_checkable

from stateflow_kernel.domain.gate import Gate
from stateflow_kernel.domain.state import State

if TYPE_CHECKING:
    from stateflow_kernel.domain.context import TransitionContext


class ExecutionSignal(str, Enum):
    """What the orchestrator does after an action returns."""

    CONTINUE = "continue"
    PAUSE = "pause"
    STOP = "stop"


@dataclass(frozen=True)
class ActionOutcome:
    """Result of executing one action."""

    signal: ExecutionSignal
    replacement_state: State | None = None
    metadata: Any = None

    @classmethod
    def continue_(
        cls, replacement_state: State | None = None, metadata: Any = None
    ) -> ActionOutcome:
        return cls(ExecutionSignal.CONTINUE, replacement_state, metadata)

    @classmethod
    def pause(
        cls, replacement_state: State | None = None, metadata: Any = None
    ) -> ActionOutcome:
        return cls(ExecutionSignal.PAUSE, replacement_state, metadata)

    @classmethod
    def stop(
        cls, replacement_state: State | None = None, metadata: Any = None
    ) -> ActionOutcome:
        return cls(ExecutionSignal.STOP, replacement_state, metadata)


class Action(ABC):
    """A unit of work in a transition.

    Subclasses override ``guard_gate`` to attach a gate that, when it does
    not ALLOW, skips only this action.
    """

    @abstractmethod
    def execute(
        self,
        current_state: State,
        delta: Mapping[str, Any],
        context: TransitionContext,
    ) -> ActionOutcome:
        ...

    def guard_gate(self) -> Gate | None:
        return None


class CallableAction(Action):
    """Action adapter over a plain function."""

    def __init__(
        self,
        identity: str,
        fn: Callable[[State, Mapping[str, Any], "TransitionContext"], ActionOutcome],
        guard: Gate | None = None,
    ) -> None:
        self.identity = identity
        self._fn = fn
        self._guard = guard

    def execute(
        self,
        current_state: State,
        delta: Mapping[str, Any],
        context: TransitionContext,
    ) -> ActionOutcome:
        return self._fn(current_state, delta, context)

    def guard_gate(self) -> Gate | None:
        return self._guard

    def __repr__(self) -> str:
        return f"CallableAction({self.identity!r})"


@runtime_checkable
class ActionFactory(Protocol):
    """Rebuilds a concrete Action from its identity string."""

    def from_identity(self, identity: str) -> Action:
        ...
