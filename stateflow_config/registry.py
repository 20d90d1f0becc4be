"""
ComponentRegistry -- named gate and action factories.

Definitions refer to gates and actions by name; the registry turns those
names into fresh instances.  It also serves as the ``ActionFactory`` used
when a context is restored from a snapshot, since snapshots carry action
identities only.

Registered names must equal the built component's identity; otherwise a
snapshot written with one name could not be resolved back to the same
action.
"""

from __future__ import annotations

from typing import Callable

from stateflow_kernel.domain.action import Action
from stateflow_kernel.domain.gate import Gate, identity_of
from stateflow_kernel.exceptions import InvalidDefinitionError, UnknownComponentError
from stateflow_kernel.logging_config import get_logger

logger = get_logger("config.registry")

GateFactory = Callable[[], Gate]
ActionFactoryFn = Callable[[], Action]


class ComponentRegistry:
    """Name -> factory maps for gates and actions."""

    def __init__(self) -> None:
        self._gates: dict[str, GateFactory] = {}
        self._actions: dict[str, ActionFactoryFn] = {}

    def register_gate(self, name: str, factory: GateFactory) -> None:
        self._gates[name] = factory
        logger.debug("gate_registered", extra={"component": name})

    def register_action(self, name: str, factory: ActionFactoryFn) -> None:
        self._actions[name] = factory
        logger.debug("action_registered", extra={"component": name})

    def has_gate(self, name: str) -> bool:
        return name in self._gates

    def has_action(self, name: str) -> bool:
        return name in self._actions

    def gate(self, name: str) -> Gate:
        factory = self._gates.get(name)
        if factory is None:
            raise UnknownComponentError("gate", name)
        return self._checked(factory(), name)

    def action(self, name: str) -> Action:
        factory = self._actions.get(name)
        if factory is None:
            raise UnknownComponentError("action", name)
        return self._checked(factory(), name)

    def from_identity(self, identity: str) -> Action:
        """ActionFactory protocol: rebuild an action from its identity."""
        return self.action(identity)

    def missing(self, gate_names: tuple[str, ...], action_names: tuple[str, ...]) -> list[str]:
        """Names referenced but not registered (``kind:name``)."""
        missing = [f"gate:{n}" for n in gate_names if n not in self._gates]
        missing.extend(f"action:{n}" for n in action_names if n not in self._actions)
        return missing

    @staticmethod
    def _checked(component, name: str):
        actual = identity_of(component)
        if actual != name:
            raise InvalidDefinitionError(
                f"registry:{name}",
                f"component identity '{actual}' does not match registered name",
            )
        return component
