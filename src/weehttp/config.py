"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server in one dataclass, with defaults that match
a small single-shot HTTP server:

    NETWORK     host, port, backlog, accept_timeout
    I/O         buffer_size, read_timeout, write_timeout
    TLS         certfile, keyfile
    BEHAVIOUR   reject_malformed, max_connections
    LOGGING     log_level, log_format

    config = ServerConfig(port=0, read_timeout=0.5)   # in code
    config = ServerConfig.from_env()                   # WEEHTTP_* variables
=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_BUFFER_SIZE = 2048
TLS_BUFFER_SIZE = 65535

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """Configuration for a weehttp server."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Port to bind. 0 lets the OS pick one (see Server.address)."""

    backlog: int = 128
    """Queued connections the kernel holds before refusing new ones."""

    accept_timeout: float = 0.5
    """
    How long accept() blocks before the loop re-checks for shutdown.
    Bounds how quickly shutdown() takes effect.
    """

    # ─────────────────────────────────────────────────────────────────────
    # I/O
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: Optional[int] = None
    """
    Capacity of the single read per connection. Requests longer than
    this are truncated. None means 2048 for plain TCP and 65535 with TLS.
    """

    read_timeout: float = 1.0
    """Seconds a read (and a TLS handshake) may block."""

    write_timeout: float = 1.0
    """Seconds a write may block."""

    # ─────────────────────────────────────────────────────────────────────
    # TLS
    # ─────────────────────────────────────────────────────────────────────

    certfile: Optional[str] = None
    """PEM certificate chain. Set together with keyfile to serve HTTPS."""

    keyfile: Optional[str] = None
    """PEM private key."""

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    reject_malformed: bool = False
    """
    False: a request that fails to parse is dropped, nothing is written.
    True: it is answered with 400 Bad Request before closing.
    """

    max_connections: Optional[int] = None
    """
    Cap on concurrently handled connections. None = one thread per
    connection with no limit. Over the cap, connections get 503.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """"text" for humans, "json" for log aggregators."""

    @property
    def tls_enabled(self) -> bool:
        return bool(self.certfile and self.keyfile)

    @property
    def effective_buffer_size(self) -> int:
        if self.buffer_size is not None:
            return self.buffer_size
        return TLS_BUFFER_SIZE if self.tls_enabled else DEFAULT_BUFFER_SIZE

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from WEEHTTP_* environment variables.

            WEEHTTP_HOST              bind address     (127.0.0.1)
            WEEHTTP_PORT              bind port        (8080)
            WEEHTTP_BUFFER_SIZE       read capacity    (2048 / 65535 with TLS)
            WEEHTTP_READ_TIMEOUT      seconds          (1.0)
            WEEHTTP_WRITE_TIMEOUT     seconds          (1.0)
            WEEHTTP_CERTFILE          PEM chain        (unset)
            WEEHTTP_KEYFILE           PEM key          (unset)
            WEEHTTP_MAX_CONNECTIONS   worker cap       (unlimited)
            WEEHTTP_REJECT_MALFORMED  1/true/yes       (false)
            WEEHTTP_LOG_LEVEL         DEBUG..CRITICAL  (INFO)
            WEEHTTP_LOG_FORMAT        text/json        (text)
        """
        env = os.environ

        def optional_int(name: str) -> Optional[int]:
            value = env.get(name)
            return int(value) if value else None

        return cls(
            host=env.get("WEEHTTP_HOST", "127.0.0.1"),
            port=int(env.get("WEEHTTP_PORT", "8080")),
            buffer_size=optional_int("WEEHTTP_BUFFER_SIZE"),
            read_timeout=float(env.get("WEEHTTP_READ_TIMEOUT", "1.0")),
            write_timeout=float(env.get("WEEHTTP_WRITE_TIMEOUT", "1.0")),
            certfile=env.get("WEEHTTP_CERTFILE") or None,
            keyfile=env.get("WEEHTTP_KEYFILE") or None,
            max_connections=optional_int("WEEHTTP_MAX_CONNECTIONS"),
            reject_malformed=env.get("WEEHTTP_REJECT_MALFORMED", "").lower() in ("1", "true", "yes"),
            log_level=env.get("WEEHTTP_LOG_LEVEL", "INFO"),
            log_format=env.get("WEEHTTP_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """
        Fail fast on values that cannot work.

        Raises:
            ValueError: Naming the first offending field.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size is not None and self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        for name in ("read_timeout", "write_timeout", "accept_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")

        if bool(self.certfile) != bool(self.keyfile):
            raise ValueError("certfile and keyfile must be given together")

        if self.max_connections is not None and self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log_level: {self.log_level}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
