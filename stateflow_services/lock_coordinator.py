"""
stateflow_services.lock_coordinator -- Mediates the pluggable lock backend.

Responsibility:
    Translates backend booleans into engine outcomes: applies the
    configured LockStrategy on acquisition, records lock state on the
    context, verifies retained ownership on resume, and emits the lock
    events.

Invariants enforced:
    - Acquisition is a single atomic ``backend.acquire`` call per attempt;
      the coordinator never does exists-then-set.
    - WAIT polls at ``poll_interval_seconds`` through the injected clock and
      gives up once ``wait_timeout_seconds`` have elapsed.
    - Resume never re-acquires: a missing lock is LockLostError.
    - No background renewal; ``renew`` is always an explicit call.

Failure modes:
    - LockAcquisitionError: FAIL_FAST miss, or WAIT timeout.
    - LockLostError: held lock no longer exists on resume.
    - LockBackendMissingError: context holds a lock but no backend is wired.
    - InvalidLockKeyError: key provider returned a non-string.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Mapping

from stateflow_kernel.domain.clock import Clock
from stateflow_kernel.domain.context import TransitionContext
from stateflow_kernel.domain.events import (
    EventDispatcher,
    LockAcquired,
    LockAcquiring,
    LockFailed,
    LockLost,
    LockReleased,
    LockRestored,
)
from stateflow_kernel.domain.lock import (
    LockBackend,
    LockKeyProvider,
    LockSettings,
    LockStrategy,
)
from stateflow_kernel.domain.state import State
from stateflow_kernel.exceptions import (
    InvalidLockKeyError,
    LockAcquisitionError,
    LockBackendMissingError,
    LockLostError,
)
from stateflow_kernel.logging_config import get_logger

logger = get_logger("services.lock_coordinator")

LOCK_FAILED_FAIL_FAST = "fail_fast"
LOCK_FAILED_TIMEOUT = "timeout"
LOCK_FAILED_SKIPPED = "skipped"


class LockCoordinator:
    """Applies a LockSettings policy over an optional LockBackend."""

    def __init__(
        self,
        backend: LockBackend | None,
        key_provider: LockKeyProvider | None,
        settings: LockSettings,
        dispatcher: EventDispatcher,
        clock: Clock,
    ):
        self._backend = backend
        self._key_provider = key_provider
        self._settings = settings
        self._dispatcher = dispatcher
        self._clock = clock

    @property
    def settings(self) -> LockSettings:
        return self._settings

    @property
    def enabled(self) -> bool:
        """True when transitions must take a lock before running."""
        return (
            self._backend is not None
            and self._key_provider is not None
            and self._settings.strategy is not LockStrategy.NONE
        )

    # ------------------------------------------------------------------
    # Backend pass-through
    # ------------------------------------------------------------------

    def key_for(self, state: State, delta: Mapping[str, Any]) -> str:
        if self._key_provider is None:
            raise RuntimeError("No lock key provider configured")
        key = self._key_provider(state, delta)
        if not isinstance(key, str):
            raise InvalidLockKeyError(type(key).__name__)
        return key

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        return self._require_backend(key).acquire(key, ttl_seconds)

    def release(self, key: str) -> bool:
        return self._require_backend(key).release(key)

    def exists(self, key: str) -> bool:
        return self._require_backend(key).exists(key)

    def renew(self, key: str, ttl_seconds: int) -> bool:
        return self._require_backend(key).renew(key, ttl_seconds)

    def _require_backend(self, key: str) -> LockBackend:
        if self._backend is None:
            raise LockBackendMissingError(key)
        return self._backend

    # ------------------------------------------------------------------
    # Context-level operations
    # ------------------------------------------------------------------

    def obtain(self, context: TransitionContext, key: str) -> bool:
        """
        Take ``key`` for ``context`` according to the strategy.

        Returns:
            True when acquired (recorded on the context), False when the
            SKIP strategy gave up.

        Raises:
            LockAcquisitionError: FAIL_FAST miss or WAIT timeout.
        """
        settings = self._settings
        state = context.current_state
        self._dispatcher.dispatch(
            LockAcquiring(
                transition_id=context.transition_id,
                occurred_at=self._clock.now_utc(),
                lock_key=key,
                state=state,
            )
        )

        attempts = 1
        acquired = self.acquire(key, settings.ttl_seconds)

        if not acquired and settings.strategy is LockStrategy.WAIT:
            deadline = self._clock.now_utc() + timedelta(
                seconds=settings.wait_timeout_seconds
            )
            while not acquired:
                remaining = (deadline - self._clock.now_utc()).total_seconds()
                if remaining <= 0:
                    break
                self._clock.sleep(min(settings.poll_interval_seconds, remaining))
                attempts += 1
                logger.debug(
                    "lock_wait_retry",
                    extra={"lock_key": key, "attempt": attempts},
                )
                acquired = self.acquire(key, settings.ttl_seconds)

        if acquired:
            acquired_at = self._clock.now_utc()
            context.record_lock_acquired(key, acquired_at, settings.ttl_seconds)
            logger.info(
                "lock_acquired",
                extra={
                    "lock_key": key,
                    "ttl_seconds": settings.ttl_seconds,
                    "attempts": attempts,
                },
            )
            self._dispatcher.dispatch(
                LockAcquired(
                    transition_id=context.transition_id,
                    occurred_at=acquired_at,
                    lock_key=key,
                    state=state,
                    ttl_seconds=settings.ttl_seconds,
                )
            )
            return True

        if settings.strategy is LockStrategy.SKIP:
            reason = LOCK_FAILED_SKIPPED
        elif settings.strategy is LockStrategy.WAIT:
            reason = LOCK_FAILED_TIMEOUT
        else:
            reason = LOCK_FAILED_FAIL_FAST

        logger.warning(
            "lock_failed",
            extra={
                "lock_key": key,
                "strategy": settings.strategy.value,
                "reason": reason,
                "attempts": attempts,
            },
        )
        self._dispatcher.dispatch(
            LockFailed(
                transition_id=context.transition_id,
                occurred_at=self._clock.now_utc(),
                lock_key=key,
                state=state,
                reason=reason,
            )
        )
        if reason == LOCK_FAILED_SKIPPED:
            return False
        raise LockAcquisitionError(key, settings.strategy.value, attempts)

    def release_for(self, context: TransitionContext) -> bool:
        """Release the context's lock if it still holds one."""
        lock = context.lock_state
        if not lock.is_held():
            return False
        released = self.release(lock.lock_key)
        released_at = self._clock.now_utc()
        context.record_lock_released(released_at)
        if not released:
            logger.warning(
                "lock_release_missed",
                extra={"lock_key": lock.lock_key},
            )
        else:
            logger.info("lock_released", extra={"lock_key": lock.lock_key})
        self._dispatcher.dispatch(
            LockReleased(
                transition_id=context.transition_id,
                occurred_at=released_at,
                lock_key=lock.lock_key,
                state=context.current_state,
            )
        )
        return released

    def restore(self, context: TransitionContext) -> None:
        """
        Verify a paused context still owns its lock.  A lock the context
        already released counts as lost.

        Raises:
            LockBackendMissingError: no backend to verify against.
            LockLostError: the lock is gone; the context is left untouched.
        """
        lock = context.lock_state
        if not lock.is_locked():
            return
        key = lock.lock_key
        if lock.is_held() and self.exists(key):
            logger.info("lock_restored", extra={"lock_key": key})
            self._dispatcher.dispatch(
                LockRestored(
                    transition_id=context.transition_id,
                    occurred_at=self._clock.now_utc(),
                    lock_key=key,
                    state=context.current_state,
                )
            )
            return

        logger.warning("lock_lost", extra={"lock_key": key})
        self._dispatcher.dispatch(
            LockLost(
                transition_id=context.transition_id,
                occurred_at=self._clock.now_utc(),
                lock_key=key,
                state=context.current_state,
            )
        )
        raise LockLostError(key, context.transition_id)

    def renew_for(self, context: TransitionContext, ttl_seconds: int | None = None) -> bool:
        """Extend the context's lock TTL; False if the backend refused."""
        lock = context.lock_state
        ttl = ttl_seconds if ttl_seconds is not None else self._settings.ttl_seconds
        renewed = self.renew(lock.lock_key, ttl)
        if renewed:
            context.record_lock_renewed(ttl)
            logger.info("lock_renewed", extra={"lock_key": lock.lock_key, "ttl_seconds": ttl})
        else:
            logger.warning("lock_renew_failed", extra={"lock_key": lock.lock_key})
        return renewed
