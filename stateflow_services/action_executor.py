"""
stateflow_services.action_executor -- Execute one action.

Responsibility:
    Evaluates an action's guard gate (if it declares one), then either
    records a skip or invokes the action and records its outcome on the
    context.  Interpreting the outcome signal is the orchestrator's job.

Invariants enforced:
    - A guard result other than ALLOW means the action is never invoked
      and exactly one ActionSkipRecord is appended.
    - The replacement state, if any, is applied verbatim before the
      execution record is appended (no merging).
    - A non-ActionOutcome return raises InvalidActionOutcomeError.
"""

from __future__ import annotations

from stateflow_kernel.domain.action import Action, ActionOutcome
from stateflow_kernel.domain.clock import Clock
from stateflow_kernel.domain.context import (
    ActionExecutionRecord,
    ActionSkipRecord,
    TransitionContext,
)
from stateflow_kernel.domain.events import (
    ActionExecuted,
    ActionExecuting,
    ActionSkipped,
    EventDispatcher,
)
from stateflow_kernel.domain.gate import Gate, Guardable, identity_of
from stateflow_kernel.exceptions import InvalidActionOutcomeError
from stateflow_kernel.logging_config import get_logger
from stateflow_services.gate_evaluator import GateEvaluator

logger = get_logger("services.action_executor")


def guard_gate_of(action: Action) -> Gate | None:
    """The action's guard gate, for actions that declare one."""
    if isinstance(action, Guardable):
        return action.guard_gate()
    return None


class ActionExecutor:
    """Runs one configured action against a context."""

    def __init__(
        self,
        gate_evaluator: GateEvaluator,
        dispatcher: EventDispatcher,
        clock: Clock,
    ):
        self._gates = gate_evaluator
        self._dispatcher = dispatcher
        self._clock = clock

    def execute(
        self, action: Action, position: int, context: TransitionContext
    ) -> ActionExecutionRecord | ActionSkipRecord:
        """Guard, then run, ``action`` at ``position``; history is appended to ``context``."""
        action_identity = identity_of(action)

        guard = guard_gate_of(action)
        if guard is not None:
            evaluation = self._gates.evaluate(
                guard,
                context.current_state,
                context.delta,
                context.transition_id,
                action_identity=action_identity,
            )
            context.record_gate_evaluation(evaluation)
            if evaluation.result.should_skip_action():
                return self._skip(action, action_identity, position, evaluation, context)

        return self._invoke(action, action_identity, position, context)

    def _skip(self, action, action_identity, position, evaluation, context):
        record = ActionSkipRecord(
            action_identity=action_identity,
            position=position,
            reason=evaluation.result,
            timestamp=self._clock.now_utc(),
        )
        context.record_action_skip(record)
        logger.info(
            "action_skipped",
            extra={
                "action": action_identity,
                "position": position,
                "result": evaluation.result.value,
            },
        )
        self._dispatcher.dispatch(
            ActionSkipped(
                transition_id=context.transition_id,
                occurred_at=record.timestamp,
                action=action,
                action_identity=action_identity,
                position=position,
                gate_result=evaluation.result,
            )
        )
        return record

    def _invoke(self, action, action_identity, position, context):
        self._dispatcher.dispatch(
            ActionExecuting(
                transition_id=context.transition_id,
                occurred_at=self._clock.now_utc(),
                action=action,
                action_identity=action_identity,
                position=position,
                current_state=context.current_state,
            )
        )

        outcome = action.execute(context.current_state, context.delta, context)
        if not isinstance(outcome, ActionOutcome):
            raise InvalidActionOutcomeError(action_identity, type(outcome).__name__)

        record = ActionExecutionRecord(
            action_identity=action_identity,
            position=position,
            outcome=outcome,
            timestamp=self._clock.now_utc(),
        )
        context.record_action_execution(record)

        logger.info(
            "action_executed",
            extra={
                "action": action_identity,
                "position": position,
                "signal": outcome.signal.value,
                "replaced_state": outcome.replacement_state is not None,
            },
        )
        self._dispatcher.dispatch(
            ActionExecuted(
                transition_id=context.transition_id,
                occurred_at=record.timestamp,
                action=action,
                action_identity=action_identity,
                position=position,
                outcome=outcome,
            )
        )
        return record
