"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the bytes physically received on a connection into a Request.

    Raw bytes                        Request
    from stream   ──parse──►   (frozen dataclass)   ──route──►  handler
        │                              │
    b"GET /a/ HTTP/1.1\r\n       Request(method=Method.GET,
      Host: x\r\n                        path="/a",
      \r\n"                              protocol=Protocol.HTTP_1_1,
                                         headers={"Host": "x"},
                                         body="")

=============================================================================
WHAT THE PARSER DOES NOT DO
=============================================================================

- It never reads more bytes. Whatever arrived in the single read is the
  whole request; Content-Length is not consulted.
- Header names keep the exact case they arrived with. "Host" and "host"
  are different keys, and the serializer writes names back verbatim.
- There is no query-string, percent-decoding or path-traversal handling;
  paths are route keys, not file-system paths.

=============================================================================
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..errors import (
    InvalidEncoding,
    MalformedHeaderLine,
    MalformedRequestLine,
    MissingBodySeparator,
    ParseError,
)
from .protocol import Method, Protocol


HEADER_BODY_SEPARATOR = "\r\n\r\n"


def normalize_path(path: str) -> str:
    """
    Turn a request path into a route key.

    Trailing slashes are stripped, so "/users/" and "/users" share a key
    and the root "/" becomes "". Applying it twice changes nothing.

        >>> normalize_path("/users/")
        '/users'
        >>> normalize_path("/")
        ''
    """
    return path.rstrip("/")


@dataclass(frozen=True)
class Request:
    """
    A parsed HTTP request.

    Immutable once built: the worker that parsed it owns it and hands it
    to exactly one handler by value.

    Attributes:
        protocol:       Version from the request line.
        method:         GET or POST.
        path:           Normalized path (see normalize_path()).
        headers:        Read-only mapping, names case-preserved, one value
                        per name (the last occurrence wins).
        body:           Everything after the blank line, as text.
        client_address: (ip, port) of the peer, for logging.
    """

    protocol: Protocol
    method: Method
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str = ""
    client_address: tuple = ("", 0)

    def __post_init__(self):
        # Freeze the header dict too; a frozen dataclass alone would still
        # let a handler mutate it in place.
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Look up a header by its exact name.

        Example:
            request.header("Host")           # "example.com"
            request.header("host")           # None unless sent lowercase
        """
        return self.headers.get(name, default)

    @property
    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            ParseError: If the body is not valid JSON.
        """
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON body: {e}") from e


class RequestParser:
    """
    Parses raw request bytes into Request objects.

    ==========================================================================
    PARSING ALGORITHM
    ==========================================================================

        1. Decode as UTF-8 ──────────────────► InvalidEncoding
        2. Split once on "\\r\\n\\r\\n" ─────────► MissingBodySeparator
        3. Lines end in CRLF or a bare LF
           Request line: METHOD SP PATH SP VERSION [ignored...]
              fewer than 3 tokens ───────────► MalformedRequestLine
              unknown verb ──────────────────► InvalidMethod
              unknown version ───────────────► InvalidProtocol
        4. Normalize the path
        5. Each header line: "Name: Value", split on the first ':'
              no ':' ────────────────────────► MalformedHeaderLine
        6. Body = remainder text, possibly ""

    ==========================================================================
    """

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> Request:
        """
        Parse one request from the bytes received on a connection.

        Args:
            data: Bytes from the single read.
            client_address: Peer (ip, port), copied onto the Request.

        Returns:
            The parsed Request.

        Raises:
            ParseError: One of its subclasses, naming what was wrong.
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidEncoding(f"Request is not valid UTF-8: {e}") from e

        header_block, sep, body = text.partition(HEADER_BODY_SEPARATOR)
        if not sep:
            raise MissingBodySeparator("No blank line after the header block")

        lines = _split_lines(header_block)
        method, path, protocol = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        return Request(
            protocol=protocol,
            method=method,
            path=path,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Split "GET /path HTTP/1.1" into (Method, normalized path, Protocol).

        The method is validated before the protocol, so a request that is
        wrong on both counts reports InvalidMethod.
        """
        tokens = line.split(" ")
        if len(tokens) < 3:
            raise MalformedRequestLine(f"Invalid request line: {line!r}")

        # Anything after the third token (a trailing space, say) is ignored.
        raw_method, raw_path, raw_protocol = tokens[:3]
        method = Method.parse(raw_method)
        protocol = Protocol.parse(raw_protocol)
        return method, normalize_path(raw_path), protocol

    def _parse_headers(self, lines: list) -> dict:
        headers = {}
        for line in lines:
            name, sep, value = line.partition(":")
            if not sep:
                raise MalformedHeaderLine(f"Header line without ':': {line!r}")
            headers[name.strip()] = value.strip()
        return headers


def _split_lines(block: str) -> list:
    """Split on "\\n", dropping one "\\r" before each break (CRLF or bare LF)."""
    return [line[:-1] if line.endswith("\r") else line for line in block.split("\n")]


def parse_request(data: bytes, client_address: tuple = ("", 0)) -> Request:
    """Parse a request with a default RequestParser."""
    return RequestParser().parse(data, client_address)
