"""
Structured logging for StateFlow.

Every record leaves the ``stateflow`` logger tree as one JSON object per
line.  The envelope is fixed::

    {"ts": ..., "level": ..., "logger": ..., "message": ...}

followed by whatever transition scope is active (see ``LogContext``), then
the ``extra`` mapping of the call site.  When a record carries an exception,
its class name, message, ``code`` and public attributes are flattened into
``exc_*`` keys so that a ``LockLostError`` can be filtered on
``exc_lock_key`` without parsing the traceback.

Transition scope:
    The orchestrator binds ``transition_id`` and ``lock_key`` for the
    duration of each phase, so gate, action and lock log lines written by
    lower layers are attributable without threading identifiers through
    every call.  Hosts may add ``correlation_id``, ``actor_id`` and
    ``trace_id`` around a call to the engine.

Nothing is configured on import.  ``configure_logging`` installs a single
handler on the ``stateflow`` logger and stops propagation; a second call is
a no-op until ``reset_logging`` runs.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Iterator, Mapping
from uuid import UUID

ROOT_LOGGER_NAME = "stateflow"

# Emission order of scope fields in every record.
SCOPE_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "transition_id",
    "lock_key",
    "actor_id",
    "trace_id",
)

_scope: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"stateflow_{name}", default=None) for name in SCOPE_FIELDS
}


class LogContext:
    """Per-thread, per-task scope fields merged into every record."""

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        transition_id: str | None = None,
        lock_key: str | None = None,
        actor_id: str | None = None,
        trace_id: str | None = None,
    ) -> None:
        """Overwrite the given fields; ``None`` leaves a field as it was."""
        given = {
            "correlation_id": correlation_id,
            "transition_id": transition_id,
            "lock_key": lock_key,
            "actor_id": actor_id,
            "trace_id": trace_id,
        }
        for name, value in given.items():
            if value is not None:
                _scope[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: value
            for name in SCOPE_FIELDS
            if (value := _scope[name].get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _scope.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """
        Scope fields for the body of a ``with`` block.

        ``None`` values and names outside the scope vocabulary are ignored.
        On exit each bound field returns to its previous value, including
        "unset".
        """
        tokens = [
            (_scope[name], _scope[name].set(value))
            for name, value in fields.items()
            if value is not None and name in _scope
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attribute names every LogRecord has; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    """Fallback encoder for values that appear in engine log payloads."""
    if isinstance(value, Enum):
        # GateResult, ExecutionSignal, LockStrategy, TransitionStatus
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return repr(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if attr.startswith("_") or attr == "code":
            continue
        fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Renders a record as a single line of JSON."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        payload: dict[str, Any] = {
            "ts": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for attr, value in vars(record).items():
            if attr in _RECORD_ATTRS:
                continue
            payload.setdefault(attr, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger ``stateflow.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


_install_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Send the ``stateflow`` tree to one JSON handler.

    ``handler`` wins over ``stream``; with neither, records go to stderr.
    The supplied handler has its formatter replaced.
    """
    global _installed_handler
    with _install_lock:
        if _installed_handler is not None:
            return
        target = handler if handler is not None else logging.StreamHandler(
            stream if stream is not None else sys.stderr
        )
        target.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(target)
        _installed_handler = target


def reset_logging() -> None:
    """Undo ``configure_logging`` (test suites only)."""
    global _installed_handler
    with _install_lock:
        _installed_handler = None
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        root.propagate = True
