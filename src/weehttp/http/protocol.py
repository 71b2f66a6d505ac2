"""
Protocol versions and request methods.

Both enums parse case-insensitively and serialize back to the canonical
uppercase literal. Anything outside the enumerated literals is rejected
with a distinct error kind so the caller can tell a bad verb from a bad
version.
"""

from enum import Enum

from ..errors import InvalidMethod, InvalidProtocol


class Protocol(Enum):
    """
    HTTP protocol versions accepted on the request line.

        >>> Protocol.parse("http/1.1")
        <Protocol.HTTP_1_1: 'HTTP/1.1'>
        >>> str(Protocol.HTTP_1_0)
        'HTTP/1.0'
    """

    HTTP_1_1 = "HTTP/1.1"
    HTTP_1_0 = "HTTP/1.0"
    HTTP_0_9 = "HTTP/0.9"

    @classmethod
    def parse(cls, value: str) -> "Protocol":
        """
        Convert a request-line token into a Protocol.

        Raises:
            InvalidProtocol: If the token is not one of the three literals.
        """
        try:
            return _PROTOCOLS[value.upper()]
        except KeyError:
            raise InvalidProtocol(f"Unsupported protocol: {value!r}") from None

    def __str__(self) -> str:
        return self.value


class Method(Enum):
    """
    Request methods.

    Only GET and POST are supported; PUT, DELETE and friends are parse
    errors rather than 405 responses.
    """

    GET = "GET"
    POST = "POST"

    @classmethod
    def parse(cls, value: str) -> "Method":
        """
        Convert a request-line token into a Method.

        Raises:
            InvalidMethod: If the verb is not GET or POST.
        """
        try:
            return _METHODS[value.upper()]
        except KeyError:
            raise InvalidMethod(f"Unsupported method: {value!r}") from None

    def __str__(self) -> str:
        return self.value


_PROTOCOLS = {p.value: p for p in Protocol}
_METHODS = {m.value: m for m in Method}
