"""
Definition-backed providers.

``DefinitionConfigurationProvider`` resolves a kernel ``Configuration``
from the first matching rule of a ``WorkflowDefinition``;
``template_lock_key_provider`` derives lock keys from a format template.
"""

from __future__ import annotations

from typing import Any, Mapping

from stateflow_config.registry import ComponentRegistry
from stateflow_config.schema import WorkflowDefinition
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.lock import LockKeyProvider
from stateflow_kernel.domain.state import State
from stateflow_kernel.exceptions import InvalidDefinitionError, NoMatchingRuleError
from stateflow_kernel.logging_config import get_logger

logger = get_logger("config.provider")


class DefinitionConfigurationProvider:
    """
    ConfigurationProvider over a WorkflowDefinition and a ComponentRegistry.

    Every component name in the definition must be registered; this is
    checked once at construction so that a typo fails at wiring time
    rather than mid-transition.

    Raises:
        InvalidDefinitionError: unregistered component names (constructor).
        NoMatchingRuleError: no rule matches (``provide``).
    """

    def __init__(self, definition: WorkflowDefinition, registry: ComponentRegistry):
        missing: list[str] = []
        for rule in definition.rules:
            missing.extend(registry.missing(rule.transition_gates, rule.actions))
        if missing:
            raise InvalidDefinitionError(
                definition.name,
                f"unregistered components: {', '.join(sorted(set(missing)))}",
            )
        self._definition = definition
        self._registry = registry

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    def provide(self, current_state: State, delta: Mapping[str, Any]) -> Configuration:
        rule = self._definition.match(current_state.to_mapping(), delta)
        if rule is None:
            raise NoMatchingRuleError(self._definition.name, sorted(delta))

        logger.debug(
            "workflow_rule_matched",
            extra={
                "workflow": self._definition.name,
                "rule": rule.name,
                "gate_count": len(rule.transition_gates),
                "action_count": len(rule.actions),
            },
        )
        return Configuration(
            transition_gates=[self._registry.gate(n) for n in rule.transition_gates],
            actions=[self._registry.action(n) for n in rule.actions],
        )


def template_lock_key_provider(template: str) -> LockKeyProvider:
    """
    Lock key provider formatting ``template`` with state fields overlaid by
    the delta, e.g. ``"order:{id}"``.

    A placeholder naming a field present in neither raises ``KeyError``.
    """

    def provide_key(state: State, delta: Mapping[str, Any]) -> str:
        fields = {**state.to_mapping(), **delta}
        return template.format_map(fields)

    return provide_key
