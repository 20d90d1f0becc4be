"""
Workflow definition schema.

A ``WorkflowDefinition`` is the human-authored, reviewable description of
which gates and actions run for which transitions.  YAML files are parsed
into these types by ``stateflow_config.loader``; at runtime
``DefinitionConfigurationProvider`` turns the first matching rule into a
kernel ``Configuration``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from stateflow_kernel.domain.lock import LockSettings


@dataclass(frozen=True)
class TransitionRuleDef:
    """Selects gates and actions for transitions matching a state/delta shape."""

    name: str
    match_state: tuple[tuple[str, Any], ...] = ()  # (field, value or tuple of values)
    match_delta: tuple[tuple[str, Any], ...] = ()
    delta_fields: tuple[str, ...] = ()
    transition_gates: tuple[str, ...] = ()
    actions: tuple[str, ...] = ()

    def matches(self, state: Mapping[str, Any], delta: Mapping[str, Any]) -> bool:
        for key, expected in self.match_state:
            if key not in state:
                return False
            if isinstance(expected, tuple):
                if state[key] not in expected:
                    return False
            elif state[key] != expected:
                return False
        for key, expected in self.match_delta:
            if key not in delta or delta[key] != expected:
                return False
        return all(name in delta for name in self.delta_fields)


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named, versioned set of transition rules plus lock behaviour."""

    name: str
    version: int
    lock: LockSettings = field(default_factory=LockSettings)
    lock_key_template: str | None = None
    rules: tuple[TransitionRuleDef, ...] = ()
    checksum: str = ""

    def match(
        self, state: Mapping[str, Any], delta: Mapping[str, Any]
    ) -> TransitionRuleDef | None:
        """First rule (in file order) matching ``state`` and ``delta``."""
        for rule in self.rules:
            if rule.matches(state, delta):
                return rule
        return None

    @property
    def component_names(self) -> frozenset[str]:
        names: set[str] = set()
        for rule in self.rules:
            names.update(rule.transition_gates)
            names.update(rule.actions)
        return frozenset(names)
