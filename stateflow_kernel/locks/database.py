"""
Module: stateflow_kernel.locks.database
Responsibility: ``LockBackend`` over a SQL table, for transitions that run
    in several processes against one database.
Architecture position: Kernel > Locks.  Imports db/ and models/.

Invariants enforced:
    - Atomic acquire: expired rows for the key are purged, then a plain
      INSERT is attempted.  The UNIQUE constraint on ``lock_key`` makes the
      database the arbiter; an IntegrityError means another owner won.
    - Owner scoping: release and renew are ``DELETE``/``UPDATE ... WHERE
      lock_key = :key AND owner = :owner``.
    - Each operation runs in its own short transaction taken from the
      session factory, so a lock is visible to other processes as soon as
      ``acquire`` returns True.

Failure modes:
    - Database errors other than IntegrityError on acquire propagate.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from stateflow_kernel.domain.clock import Clock, SystemClock
from stateflow_kernel.logging_config import get_logger
from stateflow_kernel.models.lock import LockRecordModel

logger = get_logger("locks.database")


class SqlAlchemyLockBackend:
    """
    Table-backed lock backend.

    Args:
        session_factory: Creates a fresh Session per operation.
        clock: Time source for acquired_at/expires_at.
        owner: Identity written on acquired rows.  Defaults to a uuid4.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        owner: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._owner = owner or str(uuid4())

    @property
    def owner(self) -> str:
        return self._owner

    def _now(self) -> datetime:
        # Stored naive so SQLite and PostgreSQL compare identically.
        return self._clock.now_utc().astimezone(timezone.utc).replace(tzinfo=None)

    def acquire(self, key: str, ttl_seconds: int) -> bool:
        now = self._now()
        with self._session_factory() as session:
            session.execute(
                delete(LockRecordModel).where(
                    LockRecordModel.lock_key == key,
                    LockRecordModel.expires_at <= now,
                )
            )
            session.add(
                LockRecordModel(
                    lock_key=key,
                    owner=self._owner,
                    acquired_at=now,
                    expires_at=now + timedelta(seconds=ttl_seconds),
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.debug(
                    "lock_contended",
                    extra={"lock_key": key, "owner": self._owner},
                )
                return False
        return True

    def release(self, key: str) -> bool:
        now = self._now()
        with self._session_factory() as session:
            result = session.execute(
                delete(LockRecordModel).where(
                    LockRecordModel.lock_key == key,
                    LockRecordModel.owner == self._owner,
                    LockRecordModel.expires_at > now,
                )
            )
            session.commit()
            return result.rowcount > 0

    def exists(self, key: str) -> bool:
        now = self._now()
        with self._session_factory() as session:
            row = session.execute(
                select(LockRecordModel.id).where(
                    LockRecordModel.lock_key == key,
                    LockRecordModel.expires_at > now,
                )
            ).first()
            return row is not None

    def renew(self, key: str, ttl_seconds: int) -> bool:
        now = self._now()
        with self._session_factory() as session:
            result = session.execute(
                update(LockRecordModel)
                .where(
                    LockRecordModel.lock_key == key,
                    LockRecordModel.owner == self._owner,
                    LockRecordModel.expires_at > now,
                )
                .values(expires_at=now + timedelta(seconds=ttl_seconds))
            )
            session.commit()
            return result.rowcount > 0
