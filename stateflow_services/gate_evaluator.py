"""
stateflow_services.gate_evaluator -- Evaluate one gate.

Responsibility:
    Runs a single Gate against (state, delta), validates that it returned a
    ``GateResult``, emits GateEvaluating/GateEvaluated and produces the
    GateEvaluationRecord.  Appending the record to a context is the
    caller's job.

Invariants enforced:
    - Gate errors are not converted to DENY; they propagate unchanged.
    - A non-GateResult return raises InvalidGateResultError.
"""

from __future__ import annotations

from typing import Any, Mapping

from stateflow_kernel.domain.clock import Clock
from stateflow_kernel.domain.context import GateEvaluationRecord
from stateflow_kernel.domain.events import EventDispatcher, GateEvaluated, GateEvaluating
from stateflow_kernel.domain.gate import Gate, GateResult, identity_of
from stateflow_kernel.domain.state import State
from stateflow_kernel.exceptions import InvalidGateResultError
from stateflow_kernel.logging_config import get_logger

logger = get_logger("services.gate_evaluator")


class GateEvaluator:
    """Evaluates gates and reports each evaluation."""

    def __init__(self, dispatcher: EventDispatcher, clock: Clock):
        self._dispatcher = dispatcher
        self._clock = clock

    def evaluate(
        self,
        gate: Gate,
        current_state: State,
        delta: Mapping[str, Any],
        transition_id: str,
        action_identity: str | None = None,
    ) -> GateEvaluationRecord:
        """
        Evaluate ``gate``.  ``action_identity`` marks it as an action guard.

        Raises:
            InvalidGateResultError: the gate returned something else.
            Exception: whatever the gate raised.
        """
        gate_identity = identity_of(gate)
        is_action_gate = action_identity is not None

        self._dispatcher.dispatch(
            GateEvaluating(
                transition_id=transition_id,
                occurred_at=self._clock.now_utc(),
                gate=gate,
                gate_identity=gate_identity,
                current_state=current_state,
                delta=delta,
                is_action_gate=is_action_gate,
            )
        )

        result = gate.evaluate(current_state, delta)
        if not isinstance(result, GateResult):
            raise InvalidGateResultError(gate_identity, type(result).__name__)
        message = gate.message()

        record = GateEvaluationRecord(
            gate_identity=gate_identity,
            result=result,
            message=message,
            is_action_gate=is_action_gate,
            timestamp=self._clock.now_utc(),
            action_identity=action_identity,
        )

        logger.info(
            "gate_evaluated",
            extra={
                "gate": gate_identity,
                "result": result.value,
                "gate_message": message,
                "is_action_gate": is_action_gate,
                "action": action_identity,
            },
        )
        self._dispatcher.dispatch(
            GateEvaluated(
                transition_id=transition_id,
                occurred_at=record.timestamp,
                gate=gate,
                gate_identity=gate_identity,
                result=result,
                gate_message=message,
                is_action_gate=is_action_gate,
            )
        )
        return record
