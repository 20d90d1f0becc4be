"""
Module: stateflow_kernel.models.lock
Responsibility: ORM row for one held transition lock.
Architecture position: Kernel > Models.  Used only by
    ``stateflow_kernel.locks.database``.

Invariants enforced:
    - ``lock_key`` is UNIQUE: the database, not application code, decides
      which of two concurrent INSERTs wins.
    - ``expires_at`` is naive UTC; a row whose ``expires_at`` is in the past
      is treated as absent and purged on the next acquire.
"""

from datetime import datetime

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stateflow_kernel.db.base import Base


class LockRecordModel(Base):
    """One held lock."""

    __tablename__ = "stateflow_locks"
    __table_args__ = (
        UniqueConstraint("lock_key", name="uq_stateflow_locks_lock_key"),
    )

    lock_key: Mapped[str] = mapped_column(String(255), nullable=False)
    owner: Mapped[str] = mapped_column(String(64), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LockRecord {self.lock_key} owner={self.owner} expires={self.expires_at}>"
