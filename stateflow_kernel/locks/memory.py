"""
In-process lock backend (``stateflow_kernel.locks.memory``).

A thread-safe ``LockBackend`` over a dict, with TTL expiry read from an
injected Clock.  Several backend objects created with ``for_owner`` share
one lock table, which is how tests model competing processes.

Invariants enforced
-------------------
* ``acquire`` is an atomic check-and-set under one ``threading.Lock``.
* Acquisition is not re-entrant: the owner that holds a key gets False
  when asking for it again.
* ``release`` and ``renew`` only touch locks held by this owner.
* A lock whose expiry is at or before ``clock.now_utc()`` is absent.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import uuid4

from stateflow_kernel.domain.clock import Clock, SystemClock


@dataclass
class _Entry:
    owner: str
    expires_at: datetime


class _LockTable:
    def __init__(self) -> None:
        self.mutex = threading.Lock()
        self.entries: dict[str, _Entry] = {}


class InMemoryLockBackend:
    """Dict-backed LockBackend for single-process deployments and tests."""

    def __init__(
        self,
        clock: Clock | None = None,
        owner: str | None = None,
        *,
        _table: _LockTable | None = None,
    ) -> None:
        self._clock = clock or SystemClock()
        self._owner = owner or str(uuid4())
        self._table = _table or _LockTable()

    @property
    def owner(self) -> str:
        return self._owner

    def for_owner(self, owner: str | None = None) -> InMemoryLockBackend:
        """Return a backend with another owner id sharing this lock table."""
        return InMemoryLockBackend(self._clock, owner, _table=self._table)

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._table.entries.get(key)
        if entry is not None and entry.expires_at <= self._clock.now_utc():
            del self._table.entries[key]
            return None
        return entry

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        with self._table.mutex:
            if self._live_entry(key) is not None:
                return False
            self._table.entries[key] = _Entry(
                owner=self._owner,
                expires_at=self._clock.now_utc() + timedelta(seconds=ttl_seconds),
            )
            return True

    def release(self, key: str) -> bool:
        with self._table.mutex:
            entry = self._live_entry(key)
            if entry is None or entry.owner != self._owner:
                return False
            del self._table.entries[key]
            return True

    def exists(self, key: str) -> bool:
        with self._table.mutex:
            return self._live_entry(key) is not None

    def renew(self, key: str, ttl_seconds: int) -> bool:
        with self._table.mutex:
            entry = self._live_entry(key)
            if entry is None or entry.owner != self._owner:
                return False
            entry.expires_at = self._clock.now_utc() + timedelta(seconds=ttl_seconds)
            return True

    def __repr__(self) -> str:
        return f"InMemoryLockBackend(owner={self._owner!r}, held={len(self._table.entries)})"
