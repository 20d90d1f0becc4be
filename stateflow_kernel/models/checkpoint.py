"""
Module: stateflow_kernel.models.checkpoint
Responsibility: ORM row holding the latest snapshot of one transition.
Architecture position: Kernel > Models.  Written and read by
    ``stateflow_kernel.services.checkpoint_store``.

Invariants enforced:
    - One row per ``transition_id`` (UNIQUE); saving again overwrites.
    - ``snapshot_hash`` mirrors the hash embedded in ``snapshot`` so rows
      can be compared without decoding the JSON.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stateflow_kernel.db.base import Base


class TransitionCheckpointModel(Base):
    """Persisted TransitionContext snapshot."""

    __tablename__ = "stateflow_checkpoints"
    __table_args__ = (
        UniqueConstraint("transition_id", name="uq_stateflow_checkpoints_transition"),
    )

    transition_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    lock_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    snapshot_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<TransitionCheckpoint {self.transition_id} status={self.status}>"
