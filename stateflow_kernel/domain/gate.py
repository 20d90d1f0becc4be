"""
Gate types (``stateflow_kernel.domain.gate``).

Responsibility
--------------
Pure types for validation gates: the tri-state ``GateResult``, the
``Gate`` interface, the ``Guardable`` capability for actions carrying
their own guard, and ``identity_of`` which names a gate or action in
history and snapshots.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* DENY is a value, never an exception.
* SKIP_IDEMPOTENT halts/skips exactly like DENY but stays distinguishable
  in history for idempotent-retry detection.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from stateflow_kernel.domain.state import State


class GateResult(str, Enum):
    """Outcome of evaluating a gate."""

    ALLOW = "allow"
    DENY = "deny"
    SKIP_IDEMPOTENT = "skip_idempotent"

    def should_stop_transition(self) -> bool:
        """True if a transition-level gate with this result halts the transition."""
        return self is not GateResult.ALLOW

    def should_skip_action(self) -> bool:
        """True if an action guard with this result skips its action."""
        return self is not GateResult.ALLOW

    @property
    def is_idempotent_skip(self) -> bool:
        return self is GateResult.SKIP_IDEMPOTENT


def identity_of(component: Any) -> str:
    """Stable identity string for a gate or action.

    Uses an ``identity`` attribute when the component defines one,
    otherwise the class name.
    """
    identity = getattr(component, "identity", None)
    if isinstance(identity, str) and identity:
        return identity
    return type(component).__name__


class Gate(ABC):
    """A predicate over (current state, delta).

    Contract: may perform external reads, must not mutate the state or
    delta it is given.  Errors raised from ``evaluate`` propagate.
    """

    @abstractmethod
    def evaluate(self, current_state: State, delta: Mapping[str, Any]) -> GateResult:
        ...

    def message(self) -> str | None:
        """Optional human-readable explanation recorded with the result."""
        return None


class CallableGate(Gate):
    """Gate adapter over a plain function.

    The function may return a ``GateResult`` or a bool (True -> ALLOW,
    False -> DENY).
    """

    def __init__(
        self,
        identity: str,
        predicate: Callable[[State, Mapping[str, Any]], GateResult | bool],
        message: str | None = None,
    ) -> None:
        self.identity = identity
        self._predicate = predicate
        self._message = message

    def evaluate(self, current_state: State, delta: Mapping[str, Any]) -> GateResult:
        result = self._predicate(current_state, delta)
        if isinstance(result, bool):
            return GateResult.ALLOW if result else GateResult.DENY
        return result

    def message(self) -> str | None:
        return self._message

    def __repr__(self) -> str:
        return f"CallableGate({self.identity!r})"


@runtime_checkable
class Guardable(Protocol):
    """An action that declares its own guard gate."""

    def guard_gate(self) -> Gate | None:
        ...
