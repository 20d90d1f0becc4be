"""
Entity state contract (``stateflow_kernel.domain.state``).

Responsibility
--------------
Defines the structural protocol the engine requires from a consumer's
entity state, the factory protocol used to rebuild states from snapshots,
and ``MappingState`` -- a ready-made immutable implementation over a
plain field mapping.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* The engine never mutates a State in place; ``with_changes`` returns a
  new instance and the context references the new one.
* A Delta is frozen for the lifetime of one transition attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Protocol, runtime_checkable

Delta = Mapping[str, Any]


@runtime_checkable
class State(Protocol):
    """Entity state as seen by the engine."""

    def to_mapping(self) -> Mapping[str, Any]:
        """Project the state to a flat field-name -> value mapping."""
        ...

    def with_changes(self, changes: Mapping[str, Any]) -> State:
        """Return a new state with ``changes`` applied."""
        ...


@runtime_checkable
class StateFactory(Protocol):
    """Rebuilds a concrete State from its mapping form."""

    def from_mapping(self, data: Mapping[str, Any]) -> State:
        ...


def freeze_delta(delta: Mapping[str, Any]) -> Delta:
    """Return a read-only copy of ``delta``."""
    return MappingProxyType(dict(delta))


@dataclass(frozen=True)
class MappingState:
    """Immutable State backed by a field mapping.

    Equality compares field values, so two states built from equal
    mappings are equal (used when verifying snapshot round-trips).
    """

    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def to_mapping(self) -> Mapping[str, Any]:
        return dict(self.fields)

    def with_changes(self, changes: Mapping[str, Any]) -> MappingState:
        return MappingState({**self.fields, **changes})

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)


class MappingStateFactory:
    """StateFactory producing ``MappingState`` instances."""

    def from_mapping(self, data: Mapping[str, Any]) -> MappingState:
        return MappingState(data)
