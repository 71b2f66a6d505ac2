"""
=============================================================================
ERROR KINDS
=============================================================================

Every failure the server can observe is a subclass of WeeHTTPError.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Error Scope                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   STARTUP (fatal, raised out of listen())                           │
    │     BindError         address in use / permission denied            │
    │     TlsConfigError    certificate or key cannot be loaded           │
    │                                                                      │
    │   ACCEPT LOOP (logged, loop continues)                              │
    │     AcceptError                                                     │
    │                                                                      │
    │   PER CONNECTION (logged, that connection closes)                   │
    │     ParseError        InvalidMethod, InvalidProtocol,               │
    │                       MalformedRequestLine, MalformedHeaderLine,    │
    │                       MissingBodySeparator, InvalidEncoding         │
    │     IoTimeoutError    read or write exceeded its timeout            │
    │     TlsHandshakeError                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing below the connection boundary can reach the acceptor or another
connection: the worker catches everything at its outermost frame.
=============================================================================
"""

from typing import Optional


class WeeHTTPError(Exception):
    """Base class for all weehttp errors."""


# =============================================================================
# STARTUP ERRORS
# =============================================================================

class BindError(WeeHTTPError):
    """
    The listening socket could not be bound.

    errno is copied from the underlying OSError when there is one.
    """

    def __init__(self, host: str, port: int, cause: Optional[OSError] = None):
        detail = (cause.strerror or str(cause)) if cause is not None else "unknown error"
        super().__init__(f"cannot bind {host}:{port}: {detail}")
        self.host = host
        self.port = port
        self.errno = cause.errno if cause is not None else None


class TlsConfigError(WeeHTTPError):
    """The PEM certificate chain or private key could not be loaded."""


class AcceptError(WeeHTTPError):
    """A single accept() call failed. Logged by the acceptor, never raised."""


# =============================================================================
# PARSE ERRORS
# =============================================================================

class ParseError(WeeHTTPError):
    """
    Raised when raw bytes do not form a request we understand.

    Carries the status code a hardened server would answer with, so the
    worker can turn it into a response when configured to do so.
    """

    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


# Name used when talking about the parser contract as a whole.
MalformedRequestError = ParseError


class InvalidMethod(ParseError):
    """The request-line verb is not GET or POST."""


class InvalidProtocol(ParseError):
    """The request-line version is not HTTP/1.1, HTTP/1.0 or HTTP/0.9."""


class MalformedRequestLine(ParseError):
    """The request line has fewer than three space-separated tokens."""


class MalformedHeaderLine(ParseError):
    """A header line has no ':' separator."""


class MissingBodySeparator(ParseError):
    """No blank line (CRLF CRLF) separates the header block from the body."""


class InvalidEncoding(ParseError):
    """The buffer is not valid UTF-8 text."""


MethodParseError = InvalidMethod
ProtocolParseError = InvalidProtocol


# =============================================================================
# I/O ERRORS
# =============================================================================

class IoTimeoutError(WeeHTTPError, TimeoutError):
    """A read or write on a connection exceeded its fixed timeout."""


class TlsHandshakeError(WeeHTTPError):
    """The server-side TLS handshake failed for one connection."""
