"""
=============================================================================
HTTP STATUS CODES
=============================================================================

Status codes the server and its handlers can answer with, each paired
with its canonical reason phrase:

    HTTP/1.1 404 Not Found
             ─── ─────────
              │      │
              │      └── StatusCode.NOT_FOUND.phrase
              └───────── int(StatusCode.NOT_FOUND)

The set is deliberately short. Add a member and a phrase together; the
serializer falls back to "Unknown" for a member without a phrase.
=============================================================================
"""

from enum import IntEnum


class StatusCode(IntEnum):
    """
    HTTP status codes with reason phrases.

    IntEnum, so a member compares equal to its number:

        >>> StatusCode.OK == 200
        True
        >>> StatusCode.NO_CONTENT.phrase
        'No Content'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """Reason phrase that follows the number on the status line."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx codes."""
        return self >= 400


_STATUS_PHRASES = {
    StatusCode.OK: "OK",
    StatusCode.CREATED: "Created",
    StatusCode.ACCEPTED: "Accepted",
    StatusCode.NO_CONTENT: "No Content",

    StatusCode.MOVED_PERMANENTLY: "Moved Permanently",
    StatusCode.FOUND: "Found",
    StatusCode.NOT_MODIFIED: "Not Modified",

    StatusCode.BAD_REQUEST: "Bad Request",
    StatusCode.UNAUTHORIZED: "Unauthorized",
    StatusCode.FORBIDDEN: "Forbidden",
    StatusCode.NOT_FOUND: "Not Found",
    StatusCode.METHOD_NOT_ALLOWED: "Method Not Allowed",
    StatusCode.REQUEST_TIMEOUT: "Request Timeout",
    StatusCode.PAYLOAD_TOO_LARGE: "Payload Too Large",

    StatusCode.INTERNAL_SERVER_ERROR: "Internal Server Error",
    StatusCode.NOT_IMPLEMENTED: "Not Implemented",
    StatusCode.SERVICE_UNAVAILABLE: "Service Unavailable",
    StatusCode.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
