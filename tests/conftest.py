"""
pytest configuration and fixtures.
"""

import socket
from typing import Generator, List, Optional, Tuple

import pytest

from weehttp import Request, Response, ServerBuilder, ServerConfig, Server
from weehttp.core.stream import ByteStream


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users/ HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Nessie", "loch": "Ness"}'
    return (
        b"POST /api/users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration on an OS-chosen port with short timeouts."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        read_timeout=1.0,
        write_timeout=1.0,
        accept_timeout=0.1,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# IN-MEMORY STREAM
# =============================================================================

class FakeStream(ByteStream):
    """
    ByteStream that serves canned bytes and records what is written.

    read_error / write_error, when set, are raised instead of doing I/O.
    """

    def __init__(
        self,
        data: bytes = b"",
        peer: Tuple[str, int] = ("10.0.0.1", 4242),
        secure: bool = False,
        read_error: Optional[BaseException] = None,
        write_error: Optional[BaseException] = None,
        handshake_error: Optional[BaseException] = None,
    ):
        self.data = data
        self._peer = peer
        self.secure = secure
        self.read_error = read_error
        self.write_error = write_error
        self.handshake_error = handshake_error

        self.timeouts: Optional[Tuple[float, float]] = None
        self.read_sizes: List[int] = []
        self.written = b""
        self.handshakes = 0
        self.close_count = 0

    @property
    def peer(self) -> Tuple[str, int]:
        return self._peer

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def handshake(self) -> None:
        self.handshakes += 1
        if self.handshake_error is not None:
            raise self.handshake_error

    def set_timeouts(self, read_timeout, write_timeout) -> None:
        self.timeouts = (read_timeout, write_timeout)

    def read(self, max_bytes: int) -> bytes:
        self.read_sizes.append(max_bytes)
        if self.read_error is not None:
            raise self.read_error
        chunk, self.data = self.data[:max_bytes], self.data[max_bytes:]
        return chunk

    def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written += data

    def close(self) -> None:
        self.close_count += 1


@pytest.fixture
def fake_stream_factory():
    """Build FakeStreams: fake_stream_factory(b"GET / HTTP/1.1\\r\\n\\r\\n")."""
    return FakeStream


# =============================================================================
# REAL SERVER
# =============================================================================

def echo(request: Request) -> Response:
    return Response().set_body(request.body)


def hello(request: Request) -> Response:
    return Response.text("hello")


def exchange(port: int, data: bytes, host: str = "127.0.0.1", timeout: float = 5.0) -> bytes:
    """
    Send raw bytes to the server and read until it closes the connection.
    """
    with socket.create_connection((host, port), timeout=timeout) as sock:
        if data:
            sock.sendall(data)
        chunks = []
        while True:
            try:
                chunk = sock.recv(4096)
            except ConnectionResetError:
                break
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


class TestServer:
    """Runs a ServerBuilder on a background thread for one test."""

    __test__ = False

    def __init__(self, builder: ServerBuilder):
        self.builder = builder

    @property
    def port(self) -> int:
        return self.builder.address[1]

    def start(self) -> "TestServer":
        self.builder.start(timeout=5.0)
        return self

    def stop(self) -> None:
        self.builder.shutdown(timeout=5.0)
        self.builder.wait_for_workers(timeout=5.0)

    def request(self, data: bytes, timeout: float = 5.0) -> bytes:
        return exchange(self.port, data, timeout=timeout)


@pytest.fixture
def make_server(config: ServerConfig) -> Generator:
    """
    Factory fixture: make_server(configure) builds, starts and later stops
    a server. configure receives the builder to add routes to.
    """
    started: List[TestServer] = []

    def factory(configure=None, server_config: Optional[ServerConfig] = None) -> TestServer:
        builder = Server.bind(("127.0.0.1", 0), server_config or config)
        if configure is not None:
            configure(builder)
        server = TestServer(builder).start()
        started.append(server)
        return server

    yield factory

    for server in started:
        server.stop()


@pytest.fixture
def test_server(make_server) -> TestServer:
    """A running server with "/" (hello) and "/echo" routes."""
    return make_server(lambda b: b.path("/", hello).path("/echo", echo))
