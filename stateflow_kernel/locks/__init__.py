"""Concrete LockBackend implementations."""

from stateflow_kernel.locks.database import SqlAlchemyLockBackend
from stateflow_kernel.locks.memory import InMemoryLockBackend

__all__ = ["InMemoryLockBackend", "SqlAlchemyLockBackend"]
