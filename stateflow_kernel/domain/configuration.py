"""
Transition configuration (``stateflow_kernel.domain.configuration``).

Responsibility
--------------
The ordered gate/action plan for one transition attempt and the provider
protocol that resolves it from (state, delta).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A Configuration is immutable; the orchestrator never mutates it.
* Order is significant: gates and actions run exactly as listed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence, runtime_checkable

from stateflow_kernel.domain.action import Action
from stateflow_kernel.domain.gate import Gate, identity_of
from stateflow_kernel.domain.state import State


@dataclass(frozen=True)
class Configuration:
    """Ordered transition gates and actions."""

    transition_gates: tuple[Gate, ...] = ()
    actions: tuple[Action, ...] = ()

    def __init__(
        self,
        transition_gates: Sequence[Gate] = (),
        actions: Sequence[Action] = (),
    ) -> None:
        object.__setattr__(self, "transition_gates", tuple(transition_gates))
        object.__setattr__(self, "actions", tuple(actions))

    @property
    def action_identities(self) -> tuple[str, ...]:
        return tuple(identity_of(a) for a in self.actions)


@runtime_checkable
class ConfigurationProvider(Protocol):
    """Resolves the Configuration for a (state, delta) pair."""

    def provide(self, current_state: State, delta: Mapping[str, Any]) -> Configuration:
        ...


class CallableConfigurationProvider:
    """ConfigurationProvider over a plain ``(state, delta) -> Configuration`` function."""

    def __init__(
        self, fn: Callable[[State, Mapping[str, Any]], Configuration]
    ) -> None:
        self._fn = fn

    def provide(self, current_state: State, delta: Mapping[str, Any]) -> Configuration:
        return self._fn(current_state, delta)


def as_provider(
    provider: ConfigurationProvider | Callable[[State, Mapping[str, Any]], Configuration],
) -> ConfigurationProvider:
    """Accept either a provider object or a bare callable."""
    if isinstance(provider, ConfigurationProvider):
        return provider
    if callable(provider):
        return CallableConfigurationProvider(provider)
    raise TypeError(
        f"Expected ConfigurationProvider or callable, got {type(provider).__name__}"
    )
