"""Reusable gates, actions and factories for the StateFlow test suite."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from stateflow_kernel.domain.action import Action, ActionOutcome
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.gate import Gate, GateResult
from stateflow_kernel.domain.state import MappingState


def order_key(state, delta) -> str:
    """Lock key provider used throughout the tests."""
    return f"order:{state.to_mapping()['id']}"


def fixed_provider(configuration: Configuration) -> Callable:
    """Configuration provider returning ``configuration`` for every input."""

    def provide(state, delta):
        return configuration

    return provide


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


class AlwaysAllow(Gate):
    def __init__(self) -> None:
        self.calls = 0

    def evaluate(self, current_state, delta):
        self.calls += 1
        return GateResult.ALLOW


class AlwaysDeny(Gate):
    def __init__(self, message: str | None = "not allowed") -> None:
        self._message = message
        self.calls = 0

    def evaluate(self, current_state, delta):
        self.calls += 1
        return GateResult.DENY

    def message(self):
        return self._message


class AlreadyDone(Gate):
    def evaluate(self, current_state, delta):
        return GateResult.SKIP_IDEMPOTENT

    def message(self):
        return "already applied"


class ExplodingGate(Gate):
    def evaluate(self, current_state, delta):
        raise RuntimeError("gate backend unavailable")


class LyingGate(Gate):
    """Returns a bool instead of a GateResult."""

    def evaluate(self, current_state, delta):
        return True


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class SetField(Action):
    def __init__(self, field_name: str, value: Any) -> None:
        self.field_name = field_name
        self.value = value

    def execute(self, current_state, delta, context):
        return ActionOutcome.continue_(
            current_state.with_changes({self.field_name: self.value})
        )


class NoOp(Action):
    def execute(self, current_state, delta, context):
        return ActionOutcome.continue_()


class AsyncKickoff(Action):
    def execute(self, current_state, delta, context):
        return ActionOutcome.pause(metadata={"job_id": 42})


class NeverReached(Action):
    def execute(self, current_state, delta, context):
        return ActionOutcome.continue_()


class Halt(Action):
    def execute(self, current_state, delta, context):
        return ActionOutcome.stop(metadata={"reason": "halted"})


class Boom(Action):
    def execute(self, current_state, delta, context):
        raise ValueError("action exploded")


class ReturnsNone(Action):
    def execute(self, current_state, delta, context):
        return None


_OUTCOMES = {
    "continue": ActionOutcome.continue_,
    "pause": ActionOutcome.pause,
    "stop": ActionOutcome.stop,
}


class Tracked(Action):
    """Appends its identity to a shared journal and continues."""

    def __init__(self, identity: str, journal: list[str], signal: str = "continue") -> None:
        self.identity = identity
        self._journal = journal
        self._signal = signal

    def execute(self, current_state, delta, context):
        self._journal.append(self.identity)
        return _OUTCOMES[self._signal]()


class Guarded(Action):
    """Action with a guard gate; records whether it ran."""

    def __init__(self, identity: str, guard: Gate, journal: list[str]) -> None:
        self.identity = identity
        self._guard = guard
        self._journal = journal

    def execute(self, current_state, delta, context):
        self._journal.append(self.identity)
        return ActionOutcome.continue_()

    def guard_gate(self):
        return self._guard


class ActionCatalog:
    """ActionFactory over a dict of identity -> zero-arg constructor."""

    def __init__(self, constructors: Mapping[str, Callable[[], Action]]) -> None:
        self._constructors = dict(constructors)
        self.requested: list[str] = []

    def from_identity(self, identity: str) -> Action:
        self.requested.append(identity)
        return self._constructors[identity]()


def draft_order(**fields: Any) -> MappingState:
    return MappingState({"id": 1, "status": "draft", **fields})
