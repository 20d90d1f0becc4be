"""
stateflow_services.orchestrator -- The transition control loop.

Responsibility:
    Drives one TransitionContext through
    INITIALIZING -> LOCK_ACQUISITION -> GATE_EVALUATION -> ACTION_EXECUTION
    and into exactly one of COMPLETED, STOPPED, PAUSED, FAILED or
    SKIPPED_DUE_TO_LOCK, emitting an event at every step boundary.

Architecture position:
    Services layer.  Thin coordinator -- gate evaluation, action execution
    and locking are delegated to GateEvaluator, ActionExecutor and
    LockCoordinator.  The orchestrator owns status changes only.

Invariants enforced:
    - Gates and actions run strictly in configuration order.
    - The first non-ALLOW transition gate stops the transition; no action runs.
    - PAUSE keeps the lock; COMPLETED, STOPPED and FAILED release it.
    - Resume re-verifies lock ownership and continues from the first
      position not yet in history; recorded actions are never re-invoked.
    - The action plan is recorded once, on a fresh context.  Rebinding a
      paused context never rewrites it.
    - A gate or action error marks the context FAILED, releases the lock
      and is re-raised unchanged.

Failure modes:
    - LockAcquisitionError / LockLostError: raised before any bookkeeping;
      the context status is left as it was.
    - TransitionStateError: phase call on a context in the wrong status.
    - ConfigurationMismatchError: resume configuration disagrees with
      history or with the recorded plan.
"""

from __future__ import annotations

import time
from itertools import zip_longest
from typing import Any

from stateflow_kernel.domain.action import ExecutionSignal
from stateflow_kernel.domain.clock import Clock
from stateflow_kernel.domain.configuration import Configuration
from stateflow_kernel.domain.context import (
    ActionExecutionRecord,
    TransitionContext,
    TransitionStatus,
)
from stateflow_kernel.domain.events import (
    EventDispatcher,
    TransitionCompleted,
    TransitionFailed,
    TransitionPaused,
    TransitionStarting,
    TransitionStopped,
)
from stateflow_kernel.domain.gate import identity_of
from stateflow_kernel.exceptions import (
    ConfigurationMismatchError,
    TransitionStateError,
)
from stateflow_kernel.logging_config import LogContext, get_logger
from stateflow_services.action_executor import ActionExecutor
from stateflow_services.gate_evaluator import GateEvaluator
from stateflow_services.lock_coordinator import LockCoordinator

logger = get_logger("services.orchestrator")


class TransitionOrchestrator:
    """
    Handle bound to one context and its configuration.

    Nothing runs until a phase method is called.  ``run_gates``,
    ``run_next_action`` and ``run`` are three entry points into the same
    transition rules; ``resume`` continues a PAUSED context.
    """

    def __init__(
        self,
        context: TransitionContext,
        configuration: Configuration,
        lock_coordinator: LockCoordinator,
        dispatcher: EventDispatcher,
        clock: Clock,
    ):
        self._context = context
        self._configuration = configuration
        self._locks = lock_coordinator
        self._dispatcher = dispatcher
        self._clock = clock
        self._gate_evaluator = GateEvaluator(dispatcher, clock)
        self._action_executor = ActionExecutor(self._gate_evaluator, dispatcher, clock)

        fresh = (
            context.status is TransitionStatus.IN_PROGRESS
            and not context.gate_evaluations
            and not context.processed_actions()
            and not context.lock_state.is_locked()
        )
        self._started = not fresh
        self._gates_done = not fresh

        if context.lock_state.is_locked():
            self._lock_key = context.lock_state.lock_key
        elif fresh and lock_coordinator.enabled:
            self._lock_key = lock_coordinator.key_for(context.current_state, context.delta)
        else:
            self._lock_key = None

        if fresh:
            context.plan_actions(configuration.action_identities)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def context(self) -> TransitionContext:
        return self._context

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    @property
    def status(self) -> TransitionStatus:
        return self._context.status

    @property
    def lock_key(self) -> str | None:
        return self._lock_key

    def remaining_actions(self) -> int:
        return max(len(self._configuration.actions) - self._context.next_action_position(), 0)

    # ------------------------------------------------------------------
    # Phase entry points
    # ------------------------------------------------------------------

    def run_gates(self) -> TransitionContext:
        """Acquire the lock (if configured) and evaluate the transition gates."""
        with self._bound():
            self._require_status(TransitionStatus.IN_PROGRESS, "run gates")
            if self._gates_done:
                raise TransitionStateError(
                    self._context.transition_id, self._context.status.value, "re-run gates"
                )
            self._gate_phase()
            return self._context

    def run_next_action(self) -> TransitionContext:
        """Run (or skip) exactly one action, running the gate phase first if needed."""
        with self._bound():
            self._require_status(TransitionStatus.IN_PROGRESS, "run next action")
            if not self._gates_done:
                self._gate_phase()
                if self._context.status is not TransitionStatus.IN_PROGRESS:
                    return self._context
            self._action_step()
            return self._context

    def run(self) -> TransitionContext:
        """Run every remaining phase until the context leaves IN_PROGRESS."""
        with self._bound():
            self._require_status(TransitionStatus.IN_PROGRESS, "run")
            t0 = time.monotonic()
            if not self._gates_done:
                self._gate_phase()
            while self._context.status is TransitionStatus.IN_PROGRESS:
                self._action_step()
            logger.debug(
                "transition_run_finished",
                extra={
                    "status": self._context.status.value,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 3),
                },
            )
            return self._context

    def resume(self, run_to_completion: bool = True) -> TransitionContext:
        """
        Continue a PAUSED context.

        Lock ownership is verified first; on LockLostError the context is
        still PAUSED and unmodified.  With ``run_to_completion=False`` the
        context is returned IN_PROGRESS for stepwise control.
        """
        with self._bound():
            self._require_status(TransitionStatus.PAUSED, "resume")
            self._locks.restore(self._context)
            self._verify_history_matches_configuration()

            self._context.mark_status(TransitionStatus.IN_PROGRESS)
            self._started = True
            self._gates_done = True
            logger.info(
                "transition_resumed",
                extra={
                    "next_position": self._context.next_action_position(),
                    "remaining_actions": self.remaining_actions(),
                },
            )

            if self.remaining_actions() == 0:
                self._finish(TransitionStatus.COMPLETED)
            elif run_to_completion:
                while self._context.status is TransitionStatus.IN_PROGRESS:
                    self._action_step()
            return self._context

    def renew_lock(self, ttl_seconds: int | None = None) -> bool:
        """Extend the held lock's TTL.  Never called automatically."""
        with self._bound():
            if not self._context.lock_state.is_held():
                raise TransitionStateError(
                    self._context.transition_id,
                    self._context.status.value,
                    "renew an unheld lock",
                )
            return self._locks.renew_for(self._context, ttl_seconds)

    def release_lock(self) -> bool:
        """Release the held lock, e.g. after abandoning a PAUSED transition."""
        with self._bound():
            return self._locks.release_for(self._context)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _start(self) -> bool:
        """INITIALIZING -> LOCK_ACQUISITION.  False if the lock was skipped."""
        ctx = self._context
        logger.info(
            "transition_started",
            extra={
                "delta_fields": sorted(ctx.delta),
                "gate_count": len(self._configuration.transition_gates),
                "action_count": len(self._configuration.actions),
            },
        )
        self._dispatcher.dispatch(
            TransitionStarting(
                transition_id=ctx.transition_id,
                occurred_at=self._clock.now_utc(),
                current_state=ctx.current_state,
                delta=ctx.delta,
            )
        )

        if self._lock_key is None or self._locks.obtain(ctx, self._lock_key):
            self._started = True
            return True

        self._started = True
        ctx.mark_status(TransitionStatus.SKIPPED_DUE_TO_LOCK)
        logger.info("transition_skipped_due_to_lock", extra={"lock_key": self._lock_key})
        return False

    def _gate_phase(self) -> None:
        if not self._started and not self._start():
            return

        ctx = self._context
        for gate in self._configuration.transition_gates:
            try:
                record = self._gate_evaluator.evaluate(
                    gate, ctx.current_state, ctx.delta, ctx.transition_id
                )
                ctx.record_gate_evaluation(record)
            except Exception as exc:
                self._fail(exc)
                raise
            if record.result.should_stop_transition():
                self._gates_done = True
                self._finish(
                    TransitionStatus.STOPPED,
                    {
                        "gate": record.gate_identity,
                        "result": record.result.value,
                        "message": record.message,
                    },
                )
                return

        self._gates_done = True
        if self.remaining_actions() == 0:
            self._finish(TransitionStatus.COMPLETED)

    def _action_step(self) -> None:
        ctx = self._context
        position = ctx.next_action_position()
        if position >= len(self._configuration.actions):
            self._finish(TransitionStatus.COMPLETED)
            return

        action = self._configuration.actions[position]
        try:
            record = self._action_executor.execute(action, position, ctx)
        except Exception as exc:
            self._fail(exc)
            raise

        if isinstance(record, ActionExecutionRecord):
            outcome = record.outcome
            if outcome.signal is ExecutionSignal.PAUSE:
                self._finish(TransitionStatus.PAUSED, outcome.metadata)
                return
            if outcome.signal is ExecutionSignal.STOP:
                self._finish(TransitionStatus.STOPPED, outcome.metadata)
                return

        if self.remaining_actions() == 0:
            self._finish(TransitionStatus.COMPLETED)

    # ------------------------------------------------------------------
    # Terminal bookkeeping
    # ------------------------------------------------------------------

    def _finish(self, status: TransitionStatus, metadata: Any = None) -> None:
        ctx = self._context
        ctx.mark_status(status, metadata)
        if status is not TransitionStatus.PAUSED:
            self._locks.release_for(ctx)

        now = self._clock.now_utc()
        if status is TransitionStatus.COMPLETED:
            event = TransitionCompleted(
                transition_id=ctx.transition_id,
                occurred_at=now,
                final_state=ctx.current_state,
                context=ctx,
            )
        elif status is TransitionStatus.PAUSED:
            event = TransitionPaused(
                transition_id=ctx.transition_id,
                occurred_at=now,
                current_state=ctx.current_state,
                context=ctx,
                metadata=metadata,
            )
        else:
            event = TransitionStopped(
                transition_id=ctx.transition_id,
                occurred_at=now,
                current_state=ctx.current_state,
                context=ctx,
                metadata=metadata,
            )

        logger.info(
            f"transition_{status.value}",
            extra={
                "status": status.value,
                "executed": len(ctx.action_executions),
                "skipped": len(ctx.action_skips),
                "lock_held": ctx.lock_state.is_held(),
            },
        )
        self._dispatcher.dispatch(event)

    def _fail(self, exc: Exception) -> None:
        ctx = self._context
        if ctx.status is TransitionStatus.IN_PROGRESS:
            ctx.record_failure(exc)
        try:
            self._locks.release_for(ctx)
        except Exception as release_exc:  # noqa: BLE001
            logger.error(
                "lock_release_failed",
                extra={"error_type": type(release_exc).__name__},
                exc_info=release_exc,
            )
        logger.error(
            "transition_failed",
            extra={
                "executed": len(ctx.action_executions),
                "next_position": ctx.next_action_position(),
            },
            exc_info=exc,
        )
        self._dispatcher.dispatch(
            TransitionFailed(
                transition_id=ctx.transition_id,
                occurred_at=self._clock.now_utc(),
                current_state=ctx.current_state,
                context=ctx,
                error=exc,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_status(self, status: TransitionStatus, operation: str) -> None:
        if self._context.status is not status:
            raise TransitionStateError(
                self._context.transition_id, self._context.status.value, operation
            )

    def _verify_history_matches_configuration(self) -> None:
        actions = self._configuration.actions
        for position, recorded in sorted(self._context.processed_actions().items()):
            actual = identity_of(actions[position]) if position < len(actions) else None
            if actual != recorded:
                raise ConfigurationMismatchError(position, recorded, actual)

        planned = self._context.planned_actions
        if not planned:
            return
        configured = self._configuration.action_identities
        for position, (recorded, actual) in enumerate(zip_longest(planned, configured)):
            if recorded != actual:
                raise ConfigurationMismatchError(position, recorded, actual)

    def _bound(self):
        return LogContext.bind(
            transition_id=self._context.transition_id,
            lock_key=self._lock_key,
        )

    def __repr__(self) -> str:
        return (
            f"TransitionOrchestrator({self._context!r}, "
            f"actions={len(self._configuration.actions)})"
        )
