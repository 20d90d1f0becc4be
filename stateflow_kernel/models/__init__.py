"""ORM models for persisted locks and transition checkpoints."""

from stateflow_kernel.models.checkpoint import TransitionCheckpointModel
from stateflow_kernel.models.lock import LockRecordModel


def import_all_models() -> None:
    """Ensure every model is registered on ``Base.metadata``."""
    # Importing this package registers the tables as a side effect.
    return None


__all__ = ["LockRecordModel", "TransitionCheckpointModel", "import_all_models"]
