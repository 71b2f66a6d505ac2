"""
=============================================================================
CONNECTION WORKER
=============================================================================

One Connection handles one accepted stream from first byte to close,
serving exactly one request/response exchange (no keep-alive).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection State Machine                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   NEW ──► HANDSHAKING ──► READING ──► PARSING ──► ROUTING            │
    │           (TLS only)                                  │              │
    │                                                       ▼              │
    │   CLOSED ◄── WRITING ◄── SERIALIZING ◄────────── HANDLING           │
    │     ▲                                                                │
    │     └──── any failure jumps straight here                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURE HANDLING
=============================================================================

    failure                         bytes written       logged at
    ───────────────────────────     ───────────────     ─────────
    TLS handshake fails             none                WARNING
    read times out / peer silent    none                WARNING / DEBUG
    request does not parse          none (or 400 if     WARNING
                                    reject_malformed)
    handler raises                  500                 ERROR + traceback
    write times out / peer gone     partial at most     WARNING

serve() never raises. Whatever goes wrong stays inside this connection;
the acceptor and every other connection carry on.
=============================================================================
"""

import logging
import time
import uuid
from enum import Enum
from typing import Optional

from ..errors import IoTimeoutError, ParseError, TlsHandshakeError
from ..http.request import Request, RequestParser
from ..http.response import Response, bad_request, internal_error
from ..http.router import Handler, Router
from ..tracing import NO_TRACER, Tracer
from .stream import ByteStream


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("weehttp.access")


class ConnectionState(Enum):
    """Phases of one exchange, in the only order they can occur."""

    NEW = "new"
    HANDSHAKING = "handshaking"
    READING = "reading"
    PARSING = "parsing"
    ROUTING = "routing"
    HANDLING = "handling"
    SERIALIZING = "serializing"
    WRITING = "writing"
    CLOSED = "closed"


class Connection:
    """
    The per-connection worker.

    Usage (the acceptor does this on a fresh thread):

        conn = Connection(stream, router, buffer_size=2048,
                          read_timeout=1.0, write_timeout=1.0)
        conn.serve()

    Attributes:
        id: Short random identifier used in logs and spans.
        state: Current ConnectionState.
        status_code: Status of the response written, or None if nothing
                     was written.
    """

    def __init__(
        self,
        stream: ByteStream,
        router: Router,
        *,
        buffer_size: int = 2048,
        read_timeout: float = 1.0,
        write_timeout: float = 1.0,
        reject_malformed: bool = False,
        tracer: Optional[Tracer] = None,
        parser: Optional[RequestParser] = None,
    ):
        self.stream = stream
        self.router = router
        self.buffer_size = buffer_size
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.reject_malformed = reject_malformed
        self.tracer = tracer or NO_TRACER
        self.parser = parser or RequestParser()

        self.id = uuid.uuid4().hex[:8]
        self.state = ConnectionState.NEW
        self.status_code: Optional[int] = None
        self.created_at = time.perf_counter()

    @property
    def peer(self) -> tuple:
        return self.stream.peer

    def _enter(self, state: ConnectionState) -> None:
        self.state = state
        logger.debug(f"[{self.id}] {state.value}")

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def serve(self) -> None:
        """Run the whole exchange and close the stream. Never raises."""
        try:
            self._exchange()
        except TlsHandshakeError as e:
            logger.warning(f"[{self.id}] {e}")
        except IoTimeoutError as e:
            logger.warning(f"[{self.id}] {self.state.value}: {e}")
        except ParseError as e:
            logger.warning(f"[{self.id}] Malformed request from {self.peer[0]}: {e}")
        except (ConnectionError, OSError) as e:
            logger.warning(f"[{self.id}] Connection error while {self.state.value}: {e}")
        except Exception:
            logger.exception(f"[{self.id}] Unexpected error while {self.state.value}")
        finally:
            self.stream.close()
            self._enter(ConnectionState.CLOSED)

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def _exchange(self) -> None:
        """
        read → parse → route → handle → serialize → write

        Raises whatever the failing phase raised; serve() sorts it out.
        """
        span = self.tracer.span
        self.stream.set_timeouts(self.read_timeout, self.write_timeout)

        if self.stream.secure:
            self._enter(ConnectionState.HANDSHAKING)
            with span("handshake", self.id):
                self.stream.handshake()

        self._enter(ConnectionState.READING)
        with span("read", self.id, capacity=self.buffer_size) as event:
            data = self.stream.read(self.buffer_size)
            event.set("bytes", len(data))

        if not data:
            logger.debug(f"[{self.id}] Peer closed without sending a request")
            return

        request: Optional[Request] = None
        self._enter(ConnectionState.PARSING)
        try:
            with span("parse", self.id):
                request = self.parser.parse(data, self.peer)
        except ParseError as e:
            if not self.reject_malformed:
                raise
            logger.warning(f"[{self.id}] Rejecting malformed request from {self.peer[0]}: {e}")
            response = bad_request(f"Bad Request: {e}")
        else:
            self._enter(ConnectionState.ROUTING)
            with span("route", self.id, path=request.path) as event:
                handler = self.router.resolve(request.path)
                event.set("handler", _handler_name(handler))

            self._enter(ConnectionState.HANDLING)
            with span("handle", self.id, method=request.method.value, path=request.path) as event:
                response = self._invoke(handler, request)
                event.set("status", int(response.status_code))

        self._enter(ConnectionState.SERIALIZING)
        with span("serialize", self.id):
            wire = response.serialize()

        self._enter(ConnectionState.WRITING)
        with span("write", self.id, bytes=len(wire)):
            self.stream.write(wire)

        self.status_code = int(response.status_code)
        self._log_access(request, len(wire))

    def _invoke(self, handler: Handler, request: Request) -> Response:
        """
        Call the handler; a raising or misbehaving handler becomes a 500.

        There is no timeout here. A handler that never returns holds this
        worker, and only this worker, forever.
        """
        try:
            response = handler(request)
        except Exception:
            logger.exception(f"[{self.id}] Handler {_handler_name(handler)} raised")
            return internal_error()

        if not isinstance(response, Response):
            logger.error(
                f"[{self.id}] Handler {_handler_name(handler)} returned "
                f"{type(response).__name__}, expected Response"
            )
            return internal_error()
        return response

    def _log_access(self, request: Optional[Request], sent: int) -> None:
        duration_ms = (time.perf_counter() - self.created_at) * 1000
        if request is not None:
            line = f"{request.method.value} {request.path or '/'} {request.protocol.value}"
        else:
            line = "-"
        access_logger.info(
            f'{self.peer[0]} [{self.id}] "{line}" {self.status_code} {sent} {duration_ms:.2f}ms'
        )


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__
