"""
=============================================================================
TLS ADAPTER
=============================================================================

Serves HTTPS by wrapping each accepted TCP socket in a TLS session and
handing the result to the normal connection worker:

    accept() ──► raw socket ──► TLSAdapter.wrap() ──► TLSStream
                                                         │
                                  worker: handshake() ◄──┘
                                          read()  ── decrypted request bytes
                                          write() ── encrypted by the record layer

The certificate chain and private key are loaded once, when the server
is built, into one ssl.SSLContext shared read-only by every connection.
A failed handshake raises TlsHandshakeError and ends that connection
only.
=============================================================================
"""

import logging
import socket
import ssl
from typing import Optional, Tuple

from ..errors import IoTimeoutError, TlsConfigError, TlsHandshakeError
from .stream import SocketStream


logger = logging.getLogger(__name__)


def load_tls_context(certfile: str, keyfile: str) -> ssl.SSLContext:
    """
    Build a server-side SSLContext from PEM files.

    TLS 1.2 is the minimum version; clients are not asked for certificates.

    Args:
        certfile: PEM certificate chain, leaf first.
        keyfile: PEM private key matching the leaf certificate.

    Raises:
        TlsConfigError: If either file is missing or they do not match.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    except (OSError, ssl.SSLError) as e:
        raise TlsConfigError(f"cannot load certificate {certfile!r} / key {keyfile!r}: {e}") from e
    context.verify_mode = ssl.CERT_NONE
    return context


class TLSStream(SocketStream):
    """
    SocketStream whose bytes pass through a TLS session.

    The handshake is deferred to handshake() so it runs on the worker
    thread under the worker's timeouts, not on the accept loop.
    """

    secure = True

    def __init__(self, sock: ssl.SSLSocket, address: Optional[Tuple[str, int]] = None):
        super().__init__(sock, address)
        self._handshaken = False

    def handshake(self) -> None:
        """
        Run the server side of the TLS handshake.

        Bounded by the read timeout, since the handshake waits on the
        client's hello and key exchange.

        Raises:
            TlsHandshakeError: On protocol failure, timeout or disconnect.
        """
        if self._handshaken:
            return
        self._sock.settimeout(self._read_timeout)
        try:
            self._sock.do_handshake()
        except socket.timeout as e:
            raise TlsHandshakeError(f"handshake with {self.peer[0]} timed out") from e
        except (ssl.SSLError, OSError) as e:
            raise TlsHandshakeError(f"handshake with {self.peer[0]} failed: {e}") from e
        self._handshaken = True
        logger.debug(f"TLS {self._sock.version()} established with {self.peer[0]}:{self.peer[1]}")

    def read(self, max_bytes: int) -> bytes:
        try:
            return super().read(max_bytes)
        except ssl.SSLZeroReturnError:
            return b""  # Peer sent close_notify before any data

    def write(self, data: bytes) -> None:
        try:
            super().write(data)
        except ssl.SSLError as e:
            if "timed out" in str(e):
                raise IoTimeoutError(f"write timed out after {self._write_timeout}s") from e
            raise


class TLSAdapter:
    """
    Turns accepted sockets into TLSStreams sharing one SSLContext.

    Usage:
        adapter = TLSAdapter.from_files("cert.pem", "key.pem")
        stream = adapter.wrap(client_socket, client_address)
    """

    def __init__(self, context: ssl.SSLContext):
        self.context = context

    @classmethod
    def from_files(cls, certfile: str, keyfile: str) -> "TLSAdapter":
        return cls(load_tls_context(certfile, keyfile))

    def wrap(self, sock: socket.socket, address: Optional[Tuple[str, int]] = None) -> TLSStream:
        """Wrap a connected socket; no bytes are exchanged until handshake()."""
        tls_sock = self.context.wrap_socket(
            sock,
            server_side=True,
            do_handshake_on_connect=False,
        )
        return TLSStream(tls_sock, address)
