"""
=============================================================================
WEEHTTP - A Wee HTTP/1.x Server
=============================================================================

Accepts TCP (or TLS) connections, parses one request per connection,
dispatches it to a handler chosen by exact path, writes the handler's
response and closes.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    weehttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m weehttp)
    ├── server.py            # Server / TlsServer / ServerBuilder
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error kinds
    ├── tracing.py           # Optional per-phase spans
    ├── core/                # Networking
    │   ├── acceptor.py      # Listening socket + accept loop
    │   ├── connection.py    # Per-connection worker
    │   ├── stream.py        # ByteStream capability, SocketStream
    │   └── tls.py           # TLSAdapter, TLSStream
    └── http/                # Wire model
        ├── protocol.py      # Protocol, Method
        ├── status_codes.py  # StatusCode
        ├── request.py       # Request + parser
        ├── response.py      # Response + serializer
        └── router.py        # Exact-match router

=============================================================================
QUICK START
=============================================================================

    from weehttp import Server, Response, StatusCode

    def index(request):
        return Response().set_body("Hello, World!")

    def echo(request):
        return (Response()
            .add_header("Content-Type", "text/plain")
            .set_body(request.body))

    def gone(request):
        return Response().set_status_code(StatusCode.NO_CONTENT)

    (Server.bind("127.0.0.1:8080")
        .path("/", index)
        .path("/echo", echo)
        .default(gone)
        .listen())

=============================================================================
"""

__version__ = "0.2.0"

from .config import ServerConfig
from .errors import (
    AcceptError,
    BindError,
    InvalidEncoding,
    InvalidMethod,
    InvalidProtocol,
    IoTimeoutError,
    MalformedHeaderLine,
    MalformedRequestError,
    MalformedRequestLine,
    MethodParseError,
    MissingBodySeparator,
    ParseError,
    ProtocolParseError,
    TlsConfigError,
    TlsHandshakeError,
    WeeHTTPError,
)
from .http import (
    Handler,
    Method,
    Protocol,
    Request,
    Response,
    Router,
    StatusCode,
    normalize_path,
    parse_request,
)
from .server import Server, ServerBuilder, TlsServer, configure_logging
from .tracing import LoggingSpanSink, MemorySpanSink, SpanEvent, SpanSink, Tracer

__all__ = [
    "__version__",

    # Servers
    "Server",
    "ServerBuilder",
    "TlsServer",
    "ServerConfig",
    "configure_logging",

    # Wire model
    "Handler",
    "Method",
    "Protocol",
    "Request",
    "Response",
    "Router",
    "StatusCode",
    "normalize_path",
    "parse_request",

    # Tracing
    "LoggingSpanSink",
    "MemorySpanSink",
    "SpanEvent",
    "SpanSink",
    "Tracer",

    # Errors
    "WeeHTTPError",
    "BindError",
    "AcceptError",
    "ParseError",
    "MalformedRequestError",
    "InvalidMethod",
    "InvalidProtocol",
    "MethodParseError",
    "ProtocolParseError",
    "MalformedRequestLine",
    "MalformedHeaderLine",
    "MissingBodySeparator",
    "InvalidEncoding",
    "IoTimeoutError",
    "TlsConfigError",
    "TlsHandshakeError",
]
