"""Kernel services that persist engine artefacts through a caller's Session."""

from stateflow_kernel.services.base import BaseService
from stateflow_kernel.services.checkpoint_store import CheckpointStore

__all__ = ["BaseService", "CheckpointStore"]
