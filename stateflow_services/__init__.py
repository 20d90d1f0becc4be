"""
stateflow_services -- transition orchestration.

Public entry point is ``StateFlow``; ``TransitionOrchestrator`` is the
handle it returns.
"""

from stateflow_services.action_executor import ActionExecutor
from stateflow_services.engine import StateFlow
from stateflow_services.event_dispatch import (
    CompositeEventDispatcher,
    LoggingEventDispatcher,
    NullEventDispatcher,
    RecordingEventDispatcher,
    SafeEventDispatcher,
)
from stateflow_services.gate_evaluator import GateEvaluator
from stateflow_services.lock_coordinator import LockCoordinator
from stateflow_services.orchestrator import TransitionOrchestrator

__all__ = [
    "ActionExecutor",
    "CompositeEventDispatcher",
    "GateEvaluator",
    "LockCoordinator",
    "LoggingEventDispatcher",
    "NullEventDispatcher",
    "RecordingEventDispatcher",
    "SafeEventDispatcher",
    "StateFlow",
    "TransitionOrchestrator",
]
