"""
=============================================================================
BYTE STREAMS
=============================================================================

The connection worker never touches a socket directly. It talks to a
ByteStream, which offers exactly what one request/response exchange
needs:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      ByteStream capability                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   set_timeouts(read, write)   bound every later read/write          │
    │   handshake()                 TLS only, no-op otherwise             │
    │   read(max_bytes) -> bytes    one recv, b"" on EOF                  │
    │   write(data)                 send all of data                      │
    │   close()                     orderly shutdown, idempotent          │
    │   peer                        (ip, port) of the other end           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    SocketStream  ── plain TCP socket
    TLSStream     ── same contract over a TLS session (core/tls.py)

A timed-out read or write raises IoTimeoutError; a peer that vanished
mid-write raises ConnectionError. Both end the exchange.
=============================================================================
"""

import logging
import socket
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..errors import IoTimeoutError


logger = logging.getLogger(__name__)

# Total time close() spends draining the peer before giving up, however
# the peer paces its bytes.
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class ByteStream(ABC):
    """Abstract byte stream handed to a connection worker."""

    # True for streams that run a handshake before any request bytes.
    secure = False

    def handshake(self) -> None:
        """Establish the session before the first read. No-op for plain TCP."""

    @property
    @abstractmethod
    def peer(self) -> Tuple[str, int]:
        """(ip, port) of the remote end."""

    @abstractmethod
    def set_timeouts(self, read_timeout: Optional[float], write_timeout: Optional[float]) -> None:
        """Set the timeouts applied to every subsequent read and write."""

    @abstractmethod
    def read(self, max_bytes: int) -> bytes:
        """
        Read once, returning at most max_bytes.

        Returns b"" when the peer closed without sending anything.

        Raises:
            IoTimeoutError: If nothing arrived within the read timeout.
        """

    @abstractmethod
    def write(self, data: bytes) -> None:
        """
        Write all of data.

        Raises:
            IoTimeoutError: If the write timeout expired first.
            ConnectionError: If the peer went away.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the stream. Safe to call more than once."""

    def abort(self) -> None:
        """Close at once, without waiting on the peer. Defaults to close()."""
        self.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SocketStream(ByteStream):
    """
    ByteStream over a connected TCP socket.

    Python sockets carry one timeout, so the read and write timeouts are
    swapped in before each call.
    """

    def __init__(self, sock: socket.socket, address: Optional[Tuple[str, int]] = None):
        self._sock = sock
        self._address = address or _peer_of(sock)
        self._read_timeout: Optional[float] = None
        self._write_timeout: Optional[float] = None
        self._closed = False

    @property
    def peer(self) -> Tuple[str, int]:
        return self._address

    @property
    def socket(self) -> socket.socket:
        return self._sock

    @property
    def closed(self) -> bool:
        return self._closed

    def set_timeouts(self, read_timeout: Optional[float], write_timeout: Optional[float]) -> None:
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout

    def read(self, max_bytes: int) -> bytes:
        self._sock.settimeout(self._read_timeout)
        try:
            return self._sock.recv(max_bytes)
        except socket.timeout as e:
            raise IoTimeoutError(f"read timed out after {self._read_timeout}s") from e
        except (ConnectionResetError, ConnectionAbortedError):
            return b""

    def write(self, data: bytes) -> None:
        self._sock.settimeout(self._write_timeout)
        try:
            self._sock.sendall(data)
        except socket.timeout as e:
            raise IoTimeoutError(f"write timed out after {self._write_timeout}s") from e

    def close(self) -> None:
        """
        Close gracefully.

        1. shutdown(SHUT_WR)  send FIN, the peer sees end-of-response
        2. drain              read what the peer still sends, so close()
                              does not turn unread input into a RST that
                              could destroy the response in flight;
                              bounded by DRAIN_TIMEOUT in total
        3. close()            release the descriptor
        """
        if self._closed:
            return
        self._closed = True

        try:
            self._sock.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        deadline = time.monotonic() + DRAIN_TIMEOUT
        try:
            drained = 0
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._sock.settimeout(remaining)
                chunk = self._sock.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Timeout or reset while draining

        try:
            self._sock.close()
        except OSError:
            pass

    def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.close()
        except OSError:
            pass


def _peer_of(sock: socket.socket) -> Tuple[str, int]:
    try:
        address = sock.getpeername()
    except OSError:
        return ("", 0)
    return (address[0], address[1])
