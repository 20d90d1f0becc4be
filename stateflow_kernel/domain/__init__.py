"""
StateFlow domain layer -- pure value objects and protocols.

ZERO I/O.  Nothing here imports from ``db/``, ``models/``, ``locks/`` or
the outer packages.
"""

from stateflow_kernel.domain.action import (
    Action,
    ActionFactory,
    ActionOutcome,
    CallableAction,
    ExecutionSignal,
)
from stateflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stateflow_kernel.domain.configuration import (
    CallableConfigurationProvider,
    Configuration,
    ConfigurationProvider,
)
from stateflow_kernel.domain.context import (
    ActionExecutionRecord,
    ActionSkipRecord,
    GateEvaluationRecord,
    TransitionContext,
    TransitionStatus,
)
from stateflow_kernel.domain.gate import CallableGate, Gate, GateResult, identity_of
from stateflow_kernel.domain.lock import (
    LockBackend,
    LockKeyProvider,
    LockSettings,
    LockState,
    LockStrategy,
)
from stateflow_kernel.domain.state import (
    Delta,
    MappingState,
    MappingStateFactory,
    State,
    StateFactory,
)

__all__ = [
    "Action",
    "ActionExecutionRecord",
    "ActionFactory",
    "ActionOutcome",
    "ActionSkipRecord",
    "CallableAction",
    "CallableConfigurationProvider",
    "CallableGate",
    "Clock",
    "Configuration",
    "ConfigurationProvider",
    "Delta",
    "DeterministicClock",
    "ExecutionSignal",
    "Gate",
    "GateEvaluationRecord",
    "GateResult",
    "LockBackend",
    "LockKeyProvider",
    "LockSettings",
    "LockState",
    "LockStrategy",
    "MappingState",
    "MappingStateFactory",
    "State",
    "StateFactory",
    "SystemClock",
    "TransitionContext",
    "TransitionStatus",
    "identity_of",
]
