"""
stateflow_services.event_dispatch -- EventDispatcher implementations.

Responsibility:
    Sinks for the engine's synchronous event stream: a no-op default, a
    structured-logging sink, an in-memory recorder for tests and timelines,
    fan-out to several sinks, and the isolating wrapper the orchestrator
    always puts around the caller's sink.

Invariants enforced:
    - A failing sink never aborts a transition: SafeEventDispatcher logs
      ``event_dispatch_failed`` and returns.
"""

from __future__ import annotations

import threading
from typing import Iterable

from stateflow_kernel.domain.events import Event, EventDispatcher
from stateflow_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.event_dispatch")
_events_logger = get_logger("events")

TRACE_TYPE_ENGINE_EVENT = "STATEFLOW_EVENT"


class NullEventDispatcher:
    """Discards every event."""

    def dispatch(self, event: Event) -> None:
        return None


class LoggingEventDispatcher:
    """Writes each event as a structured record on ``stateflow.events``."""

    def __init__(self, level: int | None = None):
        self._level = level

    def dispatch(self, event: Event) -> None:
        record = {"trace_type": TRACE_TYPE_ENGINE_EVENT, **event.log_fields()}
        for key, value in LogContext.get_all().items():
            record.setdefault(key, value)
        if self._level is None:
            _events_logger.info(event.name, extra=record)
        else:
            _events_logger.log(self._level, event.name, extra=record)


class RecordingEventDispatcher:
    """Keeps every dispatched event in memory, in order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[Event] = []

    def dispatch(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[Event]:
        with self._lock:
            return list(self._events)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of_type(self, event_type: type[Event]) -> list[Event]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CompositeEventDispatcher:
    """Fans one event out to several sinks in order."""

    def __init__(self, dispatchers: Iterable[EventDispatcher]):
        self._dispatchers = tuple(dispatchers)

    def dispatch(self, event: Event) -> None:
        for dispatcher in self._dispatchers:
            dispatcher.dispatch(event)


class SafeEventDispatcher:
    """Isolates sink failures from the engine."""

    def __init__(self, inner: EventDispatcher):
        self._inner = inner

    @property
    def inner(self) -> EventDispatcher:
        return self._inner

    def dispatch(self, event: Event) -> None:
        try:
            self._inner.dispatch(event)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "event_dispatch_failed",
                extra={
                    "event": event.name,
                    "transition_id": event.transition_id,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                },
            )
