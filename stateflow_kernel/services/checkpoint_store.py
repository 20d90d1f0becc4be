"""
CheckpointStore -- persist TransitionContext snapshots.

Responsibility:
    Saves the latest ``export_context`` snapshot of a transition into
    ``stateflow_checkpoints`` and restores a ``TransitionContext`` from it,
    so that a PAUSED transition can be resumed by another process.

Architecture position:
    Kernel > Services.  Flush-only (see ``BaseService``).

Invariants enforced:
    - One row per transition; ``save`` overwrites the previous snapshot.
    - ``load`` verifies the snapshot hash before rebuilding the context.

Failure modes:
    - CheckpointNotFoundError: no row for the transition_id.
    - SnapshotIntegrityError: stored JSON was altered.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stateflow_kernel.domain.clock import Clock, SystemClock
from stateflow_kernel.domain.context import TransitionContext
from stateflow_kernel.domain.snapshot import export_context, restore_context
from stateflow_kernel.domain.state import StateFactory
from stateflow_kernel.exceptions import CheckpointNotFoundError
from stateflow_kernel.logging_config import get_logger
from stateflow_kernel.models.checkpoint import TransitionCheckpointModel
from stateflow_kernel.services.base import BaseService

logger = get_logger("services.checkpoint")


class CheckpointStore(BaseService):
    """Snapshot persistence for paused or finished transitions."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _get(self, transition_id: str) -> TransitionCheckpointModel | None:
        return self.session.execute(
            select(TransitionCheckpointModel).where(
                TransitionCheckpointModel.transition_id == transition_id
            )
        ).scalar_one_or_none()

    def save(self, context: TransitionContext) -> TransitionCheckpointModel:
        """Write (or overwrite) the snapshot of ``context``."""
        snapshot = export_context(context)
        now = self._clock.now_utc().replace(tzinfo=None)
        row = self._get(context.transition_id)
        if row is None:
            row = TransitionCheckpointModel(transition_id=context.transition_id)
            self.session.add(row)
        row.status = context.status.value
        row.lock_key = context.lock_state.lock_key
        row.snapshot = snapshot
        row.snapshot_hash = snapshot["snapshot_hash"]
        row.updated_at = now
        self.session.flush()

        logger.info(
            "checkpoint_saved",
            extra={
                "transition_id": context.transition_id,
                "status": context.status.value,
                "snapshot_hash": snapshot["snapshot_hash"],
            },
        )
        return row

    def load_snapshot(self, transition_id: str) -> dict[str, Any]:
        """Return the raw snapshot dict for ``transition_id``."""
        row = self._get(transition_id)
        if row is None:
            raise CheckpointNotFoundError(transition_id)
        return dict(row.snapshot)

    def load(
        self, transition_id: str, state_factory: StateFactory
    ) -> TransitionContext:
        """Rebuild the stored context; verifies integrity first."""
        return restore_context(self.load_snapshot(transition_id), state_factory)

    def delete(self, transition_id: str) -> bool:
        row = self._get(transition_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        logger.info("checkpoint_deleted", extra={"transition_id": transition_id})
        return True
