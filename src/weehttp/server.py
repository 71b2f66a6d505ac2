"""
=============================================================================
SERVER - REGISTRATION API
=============================================================================

The public face of the package. A server is described with a builder and
then started with a blocking listen():

    from weehttp import Server, Response

    def index(request):
        return Response().set_body("hello")

    Server.bind("0.0.0.0:8080").path("/", index).listen()

HTTPS is the same server with a certificate and key:

    TlsServer.bind("0.0.0.0:8443", "key.pem", "cert.pem").path("/", index).listen()
    # or
    Server.bind("0.0.0.0:8443").tls("cert.pem", "key.pem").path("/", index).listen()

=============================================================================
WHAT HAPPENS ON listen()
=============================================================================

    1. Validate the configuration (fail fast).
    2. Freeze the route table; it is shared read-only by every worker.
    3. Bind the listening socket (BindError if that fails).
    4. Accept forever, one thread per connection, each running
       read → parse → route → handle → serialize → write → close.
    5. Return after shutdown() (or SIGINT/SIGTERM on the main thread).
=============================================================================
"""

import json
import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple, Union

from .config import ServerConfig
from .core.acceptor import Acceptor
from .core.connection import Connection
from .core.stream import ByteStream, SocketStream
from .core.tls import TLSAdapter
from .http.router import Handler, Router
from .tracing import NO_TRACER, SpanSink, Tracer


logger = logging.getLogger(__name__)

Address = Union[str, Tuple[str, int]]


def parse_address(address: Address) -> Tuple[str, int]:
    """
    Accept "host:port", "[v6]:port" or a (host, port) tuple.

        >>> parse_address("0.0.0.0:8080")
        ('0.0.0.0', 8080)
        >>> parse_address("[::1]:8080")
        ('::1', 8080)

    Raises:
        ValueError: If no port can be found.
    """
    if isinstance(address, tuple):
        host, port = address
        return (host, int(port))

    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Address must look like host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return (host or "0.0.0.0", int(port))


class ServerBuilder:
    """
    Collects routes, the default handler, TLS and tracing, then listens.

    Every configuring method returns the builder, so a whole server can
    be written as one expression. Routes must be registered before
    listen(); afterwards the table is frozen.
    """

    def __init__(self, config: ServerConfig):
        # Own copy; tls() and bind() never write to the caller's config.
        self.config = dataclasses.replace(config)
        self._router = Router()
        self._tracer: Tracer = NO_TRACER
        self._tls: Optional[TLSAdapter] = None
        self._acceptor = Acceptor(self.config, self._serve_stream, self._wrap)
        self._thread: Optional[threading.Thread] = None

        if config.tls_enabled:
            self.tls(config.certfile, config.keyfile)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def path(self, path: str, handler: Handler) -> "ServerBuilder":
        """Serve handler at path (trailing slashes ignored)."""
        self._router.register(path, handler)
        return self

    def route(self, path: str) -> Callable[[Handler], Handler]:
        """
        Decorator form of path().

            @builder.route("/echo")
            def echo(request):
                return Response().set_body(request.body)
        """
        return self._router.route(path)

    def default(self, handler: Handler) -> "ServerBuilder":
        """Handler for every path without a registered route (404 by default)."""
        self._router.set_default(handler)
        return self

    def tls(self, certfile: str, keyfile: str) -> "ServerBuilder":
        """
        Serve HTTPS with the given PEM certificate chain and private key.

        The files are read now, once; a bad pair raises TlsConfigError
        here rather than on the first connection.
        """
        self._tls = TLSAdapter.from_files(certfile, keyfile)
        self.config.certfile = certfile
        self.config.keyfile = keyfile
        return self

    def tracer(self, sink: Optional[SpanSink]) -> "ServerBuilder":
        """Send a span for every connection phase to sink (None disables)."""
        self._tracer = Tracer(sink)
        return self

    @property
    def router(self) -> Router:
        return self._router

    # =========================================================================
    # RUNNING
    # =========================================================================

    def listen(self, install_signal_handlers: bool = True) -> None:
        """
        Bind and serve until shutdown(). Blocks the calling thread.

        Raises:
            ValueError: Invalid configuration.
            BindError: The address could not be bound.
        """
        self.config.validate()
        self._router.freeze()

        scheme = "https" if self._tls else "http"
        logger.info(
            f"Starting {scheme} server with {len(self._router)} route(s), "
            f"buffer {self.config.effective_buffer_size} bytes"
        )
        self._acceptor.serve_forever(install_signal_handlers=install_signal_handlers)

    def start(self, timeout: float = 5.0) -> threading.Thread:
        """
        Run listen() on a daemon thread and wait until it is accepting.

        Binding happens on the calling thread, so a BindError surfaces
        here instead of dying with the background thread.
        """
        self.config.validate()
        self._acceptor.bind()
        self._thread = threading.Thread(
            target=self.listen,
            kwargs={"install_signal_handlers": False},
            name="weehttp-acceptor",
            daemon=True,
        )
        self._thread.start()
        if not self._acceptor.wait_until_listening(timeout):
            raise RuntimeError("Server did not start listening in time")
        return self._thread

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting and wait for the accept loop to exit.

        In-flight connections are not interrupted; use wait_for_workers()
        to wait for them as well.
        """
        was_running = self._acceptor.is_running
        self._acceptor.shutdown()
        if self._thread is not None:
            self._thread.join(timeout)
        elif was_running:
            self._acceptor.wait_for_shutdown(timeout)

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._acceptor.wait_until_listening(timeout)

    def wait_for_workers(self, timeout: Optional[float] = None) -> bool:
        return self._acceptor.wait_for_workers(timeout)

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening, the configured one before."""
        return self._acceptor.address

    @property
    def is_running(self) -> bool:
        return self._acceptor.is_running

    # =========================================================================
    # PER-CONNECTION PLUMBING
    # =========================================================================

    def _wrap(self, sock, address) -> ByteStream:
        if self._tls is not None:
            return self._tls.wrap(sock, address)
        return SocketStream(sock, address)

    def _serve_stream(self, stream: ByteStream) -> None:
        Connection(
            stream,
            self._router,
            buffer_size=self.config.effective_buffer_size,
            read_timeout=self.config.read_timeout,
            write_timeout=self.config.write_timeout,
            reject_malformed=self.config.reject_malformed,
            tracer=self._tracer,
        ).serve()


class Server:
    """Entry point for plain HTTP servers."""

    @staticmethod
    def bind(address: Address, config: Optional[ServerConfig] = None) -> ServerBuilder:
        """
        Start describing a server listening on address.

        Args:
            address: "host:port" or (host, port). Port 0 picks a free port.
            config: Further settings, copied; the copy's host and port
                    come from address.
        """
        host, port = parse_address(address)
        config = dataclasses.replace(config or ServerConfig(), host=host, port=port)
        return ServerBuilder(config)

    @staticmethod
    def from_config(config: ServerConfig) -> ServerBuilder:
        """Describe a server entirely from a ServerConfig (TLS included)."""
        return ServerBuilder(config)


class TlsServer:
    """Entry point for HTTPS servers."""

    @staticmethod
    def bind(
        address: Address,
        private_key: str,
        certs: str,
        config: Optional[ServerConfig] = None,
    ) -> ServerBuilder:
        """
        Like Server.bind(), with the certificate chain and key loaded up front.

        Raises:
            TlsConfigError: If the PEM files cannot be loaded.
        """
        return Server.bind(address, config).tls(certs, private_key)


# =============================================================================
# LOGGING SETUP
# =============================================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    Install a root handler for the weehttp loggers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        fmt: "text" for "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
             "json" for JsonFormatter.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logging.basicConfig(level=numeric, handlers=[handler])
    logging.getLogger("weehttp").setLevel(numeric)
