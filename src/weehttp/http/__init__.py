"""
=============================================================================
HTTP WIRE MODEL
=============================================================================

Everything that knows what an HTTP message looks like, and nothing that
knows about sockets:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ protocol.py      Protocol (HTTP/1.1, 1.0, 0.9), Method (GET, POST)  │
    │ status_codes.py  StatusCode with reason phrases                      │
    │ request.py       Request + RequestParser (bytes → Request)          │
    │ response.py      Response + serialize() (Response → bytes)          │
    │ router.py        Router (normalized path → handler)                  │
    └─────────────────────────────────────────────────────────────────────┘

Message format in and out:

    REQUEST:                          RESPONSE:
    GET /path HTTP/1.1\\r\\n            HTTP/1.1 200 OK\\r\\n
    Name: Value\\r\\n                   Name: Value\\r\\n
    \\r\\n                              \\r\\n
    [body]                            [body]
=============================================================================
"""

from .protocol import Method, Protocol
from .status_codes import StatusCode
from .request import Request, RequestParser, normalize_path, parse_request
from .response import (
    Response,
    ok,
    not_found,
    bad_request,
    internal_error,
    service_unavailable,
)
from .router import Handler, Router, RouterFrozenError, not_found_handler

__all__ = [
    # Wire model
    "Method",
    "Protocol",
    "StatusCode",
    "Request",
    "Response",

    # Parsing
    "RequestParser",
    "parse_request",
    "normalize_path",

    # Canned responses
    "ok",
    "not_found",
    "bad_request",
    "internal_error",
    "service_unavailable",

    # Routing
    "Handler",
    "Router",
    "RouterFrozenError",
    "not_found_handler",
]
