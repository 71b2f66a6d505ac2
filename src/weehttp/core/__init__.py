"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking half of the server, below the HTTP wire model:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ACCEPTOR (acceptor.py)                                              │
    │  • owns the listening socket, runs the accept() loop                │
    │  • one daemon thread per accepted connection                        │
    │  • optional admission cap, graceful shutdown                        │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ wraps each socket in a ByteStream
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  STREAMS (stream.py, tls.py)                                         │
    │  • SocketStream: plain TCP with read/write timeouts                 │
    │  • TLSStream: the same contract over an ssl.SSLSocket               │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ handed to the worker thread
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION (connection.py)                                          │
    │  • read → parse → route → handle → serialize → write → close        │
    │  • every failure contained to this one connection                   │
    └─────────────────────────────────────────────────────────────────────┘
=============================================================================
"""

from .acceptor import Acceptor
from .connection import Connection, ConnectionState
from .stream import ByteStream, SocketStream
from .tls import TLSAdapter, TLSStream, load_tls_context

__all__ = [
    "Acceptor",
    "Connection",
    "ConnectionState",
    "ByteStream",
    "SocketStream",
    "TLSAdapter",
    "TLSStream",
    "load_tls_context",
]
