"""Utility modules for the StateFlow kernel."""

from stateflow_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
    hash_snapshot,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_snapshot",
]
