"""
=============================================================================
COMMAND LINE INTERFACE
=============================================================================

Runs a small demo server:

    python -m weehttp                                # http://127.0.0.1:8080
    python -m weehttp --port 3000 --log-level DEBUG
    python -m weehttp --cert cert.pem --key key.pem  # https
    python -m weehttp --reject-malformed --max-connections 64

Routes:
    /        plain-text greeting
    /echo    echoes the request body back (POST it something)
    /trace   lists the spans recorded for earlier connections (--trace)
    other    built-in 404
=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .errors import BindError, TlsConfigError
from .http import Request, Response
from .server import Server, configure_logging
from .tracing import LoggingSpanSink, MemorySpanSink, SpanEvent


def index(request: Request) -> Response:
    return Response.text("Hello from weehttp!\n")


def echo(request: Request) -> Response:
    response = Response().set_body(request.body)
    content_type = request.header("Content-Type")
    if content_type:
        response.add_header("Content-Type", content_type)
    return response


class _RecordingSink:
    """Logs spans and keeps them for the /trace route."""

    def __init__(self):
        self.memory = MemorySpanSink()
        self.log = LoggingSpanSink()

    def emit(self, event: SpanEvent) -> None:
        self.memory.emit(event)
        self.log.emit(event)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="weehttp",
        description="A wee HTTP/1.x server: one request per connection, exact-path routing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m weehttp                         # Run with defaults
  python -m weehttp --host 0.0.0.0 -p 80    # Listen on all interfaces
  python -m weehttp --cert c.pem --key k.pem
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default="127.0.0.1",
                        help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=8080,
                        help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # TLS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--cert", help="PEM certificate chain (enables HTTPS)")
    parser.add_argument("--key", help="PEM private key")

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--buffer-size", type=int, default=None,
                        help="Bytes read per request (default: 2048, 65535 with TLS)")
    parser.add_argument("--timeout", type=float, default=1.0,
                        help="Read and write timeout in seconds (default: 1.0)")
    parser.add_argument("--reject-malformed", action="store_true",
                        help="Answer unparseable requests with 400 instead of closing")
    parser.add_argument("--max-connections", type=int, default=None,
                        help="Cap on concurrent connections; extra ones get 503")
    parser.add_argument("--trace", action="store_true",
                        help="Record per-phase spans (logged at DEBUG, listed at /trace)")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log-level", "-l", choices=LOG_LEVELS, default="INFO",
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default="text",
                        help="Log output format (default: text)")

    parser.add_argument("--version", "-v", action="version",
                        version=f"weehttp {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = ServerConfig(
        buffer_size=args.buffer_size,
        read_timeout=args.timeout,
        write_timeout=args.timeout,
        reject_malformed=args.reject_malformed,
        max_connections=args.max_connections,
        log_level=args.log_level,
        log_format=args.log_format,
    )
    configure_logging(config.log_level, config.log_format)

    try:
        server = Server.bind((args.host, args.port), config)
        if args.cert or args.key:
            if not (args.cert and args.key):
                print("error: --cert and --key must be given together", file=sys.stderr)
                return 2
            server.tls(args.cert, args.key)

        server.path("/", index).path("/echo", echo)

        if args.trace:
            sink = _RecordingSink()
            server.tracer(sink)

            def trace(request: Request) -> Response:
                return Response.json([e.to_dict() for e in sink.memory.events])

            server.path("/trace", trace)

        server.listen()
    except (BindError, TlsConfigError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
