"""
Lock contracts (``stateflow_kernel.domain.lock``).

Responsibility
--------------
The pluggable lock backend protocol, the key-provider signature, the
acquisition strategies, per-engine lock settings, and the ``LockState``
snapshot a TransitionContext carries.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Concrete
backends live in ``stateflow_kernel.locks``.

Invariants enforced
-------------------
* Backends implement ``acquire`` as an atomic check-and-set.
* Once a LockState records an acquisition, ``lock_key`` and
  ``acquired_at`` never change; only ``ttl_seconds`` (renewal) and
  ``released_at`` (release) may be updated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from stateflow_kernel.domain.state import State


class LockStrategy(str, Enum):
    """Behaviour when the transition lock is already held elsewhere."""

    NONE = "none"
    FAIL_FAST = "fail_fast"
    WAIT = "wait"
    SKIP = "skip"


@runtime_checkable
class LockBackend(Protocol):
    """Storage for named mutual-exclusion locks with TTL."""

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        """Atomically take ``key``; False if it is held elsewhere."""
        ...

    def release(self, key: str) -> bool:
        """Drop ``key``; False if it was not held by this owner."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def renew(self, key: str, ttl_seconds: int) -> bool:
        """Extend the TTL; False if the lock is gone or owned by someone else."""
        ...


LockKeyProvider = Callable[[State, Mapping[str, Any]], str]


@dataclass(frozen=True)
class LockSettings:
    """Per-engine lock behaviour."""

    strategy: LockStrategy = LockStrategy.FAIL_FAST
    ttl_seconds: int = 300
    wait_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 0.5

    def __post_init__(self) -> None:
        if not isinstance(self.strategy, LockStrategy):
            object.__setattr__(self, "strategy", LockStrategy(self.strategy))
        if self.ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {self.ttl_seconds}")
        if self.wait_timeout_seconds < 0:
            raise ValueError(
                f"wait_timeout_seconds must be >= 0, got {self.wait_timeout_seconds}"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            )


@dataclass(frozen=True)
class LockState:
    """Lock snapshot carried by a TransitionContext."""

    lock_key: str | None = None
    acquired_at: datetime | None = None
    ttl_seconds: int | None = None
    released_at: datetime | None = None

    def is_locked(self) -> bool:
        return self.lock_key is not None

    def is_held(self) -> bool:
        """Locked and not yet released by this transition."""
        return self.is_locked() and self.released_at is None

    def renewed(self, ttl_seconds: int) -> LockState:
        return replace(self, ttl_seconds=ttl_seconds)

    def released(self, at: datetime) -> LockState:
        return replace(self, released_at=at)
