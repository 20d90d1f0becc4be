"""
stateflow_services.engine -- StateFlow entry point.

Responsibility:
    Stateless factory: resolves a Configuration for (state, delta) through
    the injected provider and returns a TransitionOrchestrator bound to a
    fresh, live or snapshot-restored TransitionContext.  Nothing executes
    until the caller runs a phase on the returned handle.

Invariants enforced:
    - All collaborators (provider, lock backend, key provider, sink, clock)
      are passed explicitly; there is no process-wide engine state.
    - The caller's event sink is always wrapped in SafeEventDispatcher.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from stateflow_config.provider import (
    DefinitionConfigurationProvider,
    template_lock_key_provider,
)
from stateflow_config.registry import ComponentRegistry
from stateflow_config.schema import WorkflowDefinition
from stateflow_kernel.domain.action import ActionFactory
from stateflow_kernel.domain.clock import Clock, SystemClock
from stateflow_kernel.domain.configuration import (
    Configuration,
    ConfigurationProvider,
    as_provider,
)
from stateflow_kernel.domain.context import TransitionContext
from stateflow_kernel.domain.events import EventDispatcher
from stateflow_kernel.domain.lock import (
    LockBackend,
    LockKeyProvider,
    LockSettings,
    LockStrategy,
)
from stateflow_kernel.domain.snapshot import restore_context
from stateflow_kernel.domain.state import State, StateFactory
from stateflow_kernel.logging_config import get_logger
from stateflow_services.event_dispatch import NullEventDispatcher, SafeEventDispatcher
from stateflow_services.lock_coordinator import LockCoordinator
from stateflow_services.orchestrator import TransitionOrchestrator

logger = get_logger("services.engine")


class StateFlow:
    """
    Engine entry point.

    Args:
        configuration_provider: ``provide(state, delta) -> Configuration``
            object, or a plain callable with that signature.
        lock_backend: Optional LockBackend.  Locking is active only when a
            backend and a key provider are both given and the strategy is
            not NONE.
        lock_key_provider: ``(state, delta) -> str``.
        lock_settings: Strategy, TTL and WAIT parameters.
        event_dispatcher: Event sink; failures inside it are isolated.
        clock: Time source; defaults to SystemClock.

    Raises:
        ValueError: a lock backend with a locking strategy but no key provider.
    """

    def __init__(
        self,
        configuration_provider: ConfigurationProvider
        | Callable[[State, Mapping[str, Any]], Configuration],
        lock_backend: LockBackend | None = None,
        lock_key_provider: LockKeyProvider | None = None,
        lock_settings: LockSettings | None = None,
        event_dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self._provider = as_provider(configuration_provider)
        self._lock_settings = lock_settings or LockSettings()
        if (
            lock_backend is not None
            and lock_key_provider is None
            and self._lock_settings.strategy is not LockStrategy.NONE
        ):
            raise ValueError("A lock backend requires a lock_key_provider")
        self._lock_backend = lock_backend
        self._lock_key_provider = lock_key_provider
        self._dispatcher = SafeEventDispatcher(event_dispatcher or NullEventDispatcher())
        self._clock = clock or SystemClock()

    @classmethod
    def from_definition(
        cls,
        definition: WorkflowDefinition,
        registry: ComponentRegistry,
        lock_backend: LockBackend | None = None,
        event_dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
    ) -> StateFlow:
        """Wire an engine from a workflow definition and component registry."""
        key_provider = (
            template_lock_key_provider(definition.lock_key_template)
            if definition.lock_key_template
            else None
        )
        logger.info(
            "engine_configured_from_definition",
            extra={
                "workflow": definition.name,
                "version": definition.version,
                "checksum": definition.checksum,
                "strategy": definition.lock.strategy.value,
            },
        )
        return cls(
            DefinitionConfigurationProvider(definition, registry),
            lock_backend=lock_backend,
            lock_key_provider=key_provider,
            lock_settings=definition.lock,
            event_dispatcher=event_dispatcher,
            clock=clock,
        )

    @property
    def lock_settings(self) -> LockSettings:
        return self._lock_settings

    def transition(
        self, current_state: State, delta: Mapping[str, Any]
    ) -> TransitionOrchestrator:
        """Resolve configuration and bind a fresh context.  Runs nothing."""
        configuration = self._provider.provide(current_state, delta)
        context = TransitionContext(current_state, delta)
        logger.debug(
            "transition_created",
            extra={
                "transition_id": context.transition_id,
                "gate_count": len(configuration.transition_gates),
                "action_count": len(configuration.actions),
            },
        )
        return self._bind(context, configuration)

    def from_context(
        self,
        context: TransitionContext,
        configuration: Configuration | None = None,
    ) -> TransitionOrchestrator:
        """
        Rebind a live context (typically PAUSED) for resumption.

        Without ``configuration`` the provider is asked again using the
        context's initial state and delta.
        """
        if configuration is None:
            configuration = self._provider.provide(context.initial_state, context.delta)
        return self._bind(context, configuration)

    def from_snapshot(
        self,
        data: Mapping[str, Any],
        state_factory: StateFactory,
        action_factory: ActionFactory | None = None,
        configuration: Configuration | None = None,
    ) -> TransitionOrchestrator:
        """
        Restore a context from ``export_context`` output and rebind it.

        Configuration precedence: explicit ``configuration``, then actions
        rebuilt from the snapshot's planned identities via
        ``action_factory``, then the provider.
        """
        context = restore_context(data, state_factory)
        if configuration is None and action_factory is not None:
            configuration = Configuration(
                actions=[action_factory.from_identity(i) for i in context.planned_actions]
            )
        return self.from_context(context, configuration)

    def _bind(
        self, context: TransitionContext, configuration: Configuration
    ) -> TransitionOrchestrator:
        coordinator = LockCoordinator(
            self._lock_backend,
            self._lock_key_provider,
            self._lock_settings,
            self._dispatcher,
            self._clock,
        )
        return TransitionOrchestrator(
            context, configuration, coordinator, self._dispatcher, self._clock
        )
