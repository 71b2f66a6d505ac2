"""
=============================================================================
HTTP RESPONSE BUILDING AND SERIALIZATION
=============================================================================

Handlers build a Response, the connection worker serializes it.

    Handler returns          serialize()               Stream writes
    Response       ─────►   consumes body   ─────►     raw bytes
        │                        │                          │
    Response()               b"HTTP/1.1 200 OK\\r\\n     stream.write(
      .set_body("hi")          Content-Length: 2\\r\\n      wire_bytes
                               \\r\\n                     )
                               hi"

=============================================================================
CONTENT-LENGTH RULES
=============================================================================

    body never set          → no Content-Length header at all
    set_body("")            → Content-Length: 0
    set_body("héllo")       → Content-Length: 6   (UTF-8 byte length)

The header is computed at serialization time on a copy of the headers;
it is never stored on the Response. serialize() then drops the body, so
a second call produces a response with no body and no Content-Length.
=============================================================================
"""

import json
from typing import Any, Dict, Optional, Union

from .protocol import Protocol
from .status_codes import StatusCode


Body = Union[str, bytes]


class Response:
    """
    An HTTP response under construction.

    Every setter returns self so handlers can chain:

        return (Response()
            .set_status_code(StatusCode.CREATED)
            .add_header("Location", "/users/7")
            .set_body("created"))
    """

    def __init__(
        self,
        status_code: StatusCode = StatusCode.OK,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Body] = None,
        protocol: Protocol = Protocol.HTTP_1_1,
    ):
        self.protocol = protocol
        self.status_code = StatusCode(status_code)
        self.headers: Dict[str, str] = dict(headers or {})
        self.body = body

    def __repr__(self) -> str:
        return (
            f"Response(protocol={self.protocol.value!r}, "
            f"status_code={int(self.status_code)}, headers={self.headers!r}, "
            f"body={self.body!r})"
        )

    # =========================================================================
    # BUILDING
    # =========================================================================

    def set_status_code(self, status_code: StatusCode) -> "Response":
        self.status_code = StatusCode(status_code)
        return self

    def set_protocol(self, protocol: Protocol) -> "Response":
        self.protocol = protocol
        return self

    def add_header(self, name: Any, value: Any) -> "Response":
        """
        Set a header, replacing any previous value under the same name.

        Names are case-sensitive: "X-Id" and "x-id" are two headers.
        Non-string values are converted with str().
        """
        self.headers[str(name)] = str(value)
        return self

    def set_body(self, body: Body) -> "Response":
        """Set the body. Strings are sent UTF-8 encoded."""
        self.body = body
        return self

    @property
    def has_body(self) -> bool:
        return self.body is not None

    @property
    def status_line(self) -> str:
        """
        Format: PROTOCOL SP CODE SP REASON-PHRASE
        Example: "HTTP/1.1 204 No Content"
        """
        return f"{self.protocol.value} {int(self.status_code)} {self.status_code.phrase}"

    # =========================================================================
    # CONVENIENCE CONSTRUCTORS
    # =========================================================================

    @classmethod
    def text(cls, text: str, status_code: StatusCode = StatusCode.OK) -> "Response":
        """Plain-text response with a UTF-8 Content-Type."""
        return (cls(status_code)
            .add_header("Content-Type", "text/plain; charset=utf-8")
            .set_body(text))

    @classmethod
    def json(cls, data: Any, status_code: StatusCode = StatusCode.OK) -> "Response":
        """JSON response; non-ASCII characters are sent as UTF-8, not escaped."""
        return (cls(status_code)
            .add_header("Content-Type", "application/json; charset=utf-8")
            .set_body(json.dumps(data, ensure_ascii=False)))

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def serialize(self) -> bytes:
        """
        Produce the exact bytes to write and consume the body.

            HTTP/1.1 200 OK\\r\\n          ← status line
            Content-Type: text/plain\\r\\n ← handler headers, any order
            Content-Length: 2\\r\\n        ← only if a body was set
            \\r\\n                         ← blank line
            hi                           ← body bytes (may be empty)

        Returns:
            The complete response as bytes.
        """
        body = self.body
        self.body = None

        if body is None:
            body_bytes = b""
        elif isinstance(body, str):
            body_bytes = body.encode("utf-8")
        else:
            body_bytes = bytes(body)

        headers = dict(self.headers)
        if body is not None:
            headers["Content-Length"] = str(len(body_bytes))

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = "\r\n".join(lines) + "\r\n\r\n"

        return head.encode("utf-8") + body_bytes


# =============================================================================
# CANNED RESPONSES
# =============================================================================

NOT_FOUND_BODY = "404 Not Found\nOops! Looks like Nessie took our page for a swim in the Loch"


def ok(body: Optional[Body] = None) -> Response:
    """200 OK, with a body only if one is given."""
    return Response(StatusCode.OK, body=body)


def not_found() -> Response:
    """404 with the built-in not-found page."""
    return Response(StatusCode.NOT_FOUND, body=NOT_FOUND_BODY)


def bad_request(message: str = "Bad Request") -> Response:
    return Response.text(message, StatusCode.BAD_REQUEST)


def internal_error(message: str = "Internal Server Error") -> Response:
    return Response.text(message, StatusCode.INTERNAL_SERVER_ERROR)


def service_unavailable(message: str = "Service Unavailable") -> Response:
    return Response.text(message, StatusCode.SERVICE_UNAVAILABLE)
