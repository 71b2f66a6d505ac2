"""
=============================================================================
PHASE TRACING
=============================================================================

Optional spans around the phases of a connection:

    handshake → read → parse → route → handle → serialize → write
    (TLS only)

Each phase that runs produces one SpanEvent, handed to a SpanSink:

    SpanEvent(name="handle", connection_id="3f2a9c1e",
              duration_ms=0.41, attributes={"path": "/echo"}, error=None)

The worker only ever calls Tracer.span(); where events end up is the
sink's business. A sink that raises is logged and ignored, so tracing
can never take a connection down.

=============================================================================
USAGE
=============================================================================

    sink = MemorySpanSink()
    Server.bind("127.0.0.1:8080").tracer(sink).path("/", index).listen()

    # or, to see spans in the log:
    Server.bind("127.0.0.1:8080").tracer(LoggingSpanSink()).listen()
=============================================================================
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol


logger = logging.getLogger(__name__)


@dataclass
class SpanEvent:
    """One finished phase of one connection."""

    name: str
    connection_id: str
    start: float
    duration_ms: float = 0.0
    attributes: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def set(self, key: str, value: Any) -> None:
        """Attach an attribute while the span is still open."""
        self.attributes[key] = value

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "connection_id": self.connection_id,
            "start": self.start,
            "duration_ms": round(self.duration_ms, 3),
            "attributes": dict(self.attributes),
            "error": self.error,
        }


class SpanSink(Protocol):
    """Anything with emit(event) can receive spans."""

    def emit(self, event: SpanEvent) -> None:
        ...


class LoggingSpanSink:
    """Writes every span to the "weehttp.trace" logger at DEBUG (INFO on error)."""

    def __init__(self, logger_name: str = "weehttp.trace"):
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: SpanEvent) -> None:
        level = logging.INFO if event.error else logging.DEBUG
        attrs = " ".join(f"{k}={v}" for k, v in event.attributes.items())
        self._logger.log(
            level,
            f"[{event.connection_id}] {event.name} {event.duration_ms:.3f}ms"
            + (f" {attrs}" if attrs else "")
            + (f" error={event.error}" if event.error else ""),
        )


class MemorySpanSink:
    """Keeps events in a list. Thread-safe; meant for tests and debugging."""

    def __init__(self):
        self._events: List[SpanEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: SpanEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[SpanEvent]:
        with self._lock:
            return list(self._events)

    def names(self, connection_id: Optional[str] = None) -> List[str]:
        """Span names in emission order, optionally for one connection."""
        return [
            e.name for e in self.events
            if connection_id is None or e.connection_id == connection_id
        ]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class Tracer:
    """Opens spans and delivers them to a sink."""

    def __init__(self, sink: Optional[SpanSink] = None):
        self.sink = sink

    @property
    def enabled(self) -> bool:
        return self.sink is not None

    @contextmanager
    def span(self, name: str, connection_id: str, **attributes: Any) -> Iterator[SpanEvent]:
        """
        Time the enclosed block as one span.

        The yielded SpanEvent accepts extra attributes. An exception
        inside the block is recorded on the event and re-raised.
        """
        event = SpanEvent(
            name=name,
            connection_id=connection_id,
            start=time.time(),
            attributes=dict(attributes),
        )
        started = time.perf_counter()
        try:
            yield event
        except BaseException as e:
            event.error = type(e).__name__
            raise
        finally:
            event.duration_ms = (time.perf_counter() - started) * 1000
            self._emit(event)

    def _emit(self, event: SpanEvent) -> None:
        if self.sink is None:
            return
        try:
            self.sink.emit(event)
        except Exception:
            logger.exception(f"Span sink {type(self.sink).__name__} failed on {event.name!r}")


NO_TRACER = Tracer(None)
