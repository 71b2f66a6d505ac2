"""
=============================================================================
ACCEPTOR
=============================================================================

Owns the listening socket and hands every accepted connection to its own
worker thread.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Acceptor Lifecycle                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   bind()            socket() + SO_REUSEADDR + bind() + listen()     │
    │      │              failure → BindError (fatal)                     │
    │      ▼                                                               │
    │   serve_forever()   while running:                                   │
    │      │                  accept()          (times out every 0.5s     │
    │      │                                     to notice shutdown)      │
    │      │                  wrap → ByteStream (plain or TLS)            │
    │      │                  admission check   (max_connections)         │
    │      │                  Thread(worker).start()                      │
    │      │              accept failure → logged, loop continues         │
    │      ▼                                                               │
    │   shutdown()        flag + event; loop exits on next wake-up        │
    │                     in-flight workers finish on their own           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Thread-per-connection: a slow handler only ever stalls its own thread.
With max_connections unset the number of threads is unbounded; set it
to shed load with 503 instead.
=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Callable, Optional, Tuple

from ..config import ServerConfig
from ..errors import AcceptError, BindError
from ..http.response import service_unavailable
from .stream import ByteStream, SocketStream


logger = logging.getLogger(__name__)


StreamFactory = Callable[[socket.socket, Tuple[str, int]], ByteStream]
StreamHandler = Callable[[ByteStream], None]


def plain_stream(sock: socket.socket, address: Tuple[str, int]) -> ByteStream:
    return SocketStream(sock, address)


class Acceptor:
    """
    TCP accept loop with one worker thread per connection.

    Usage:
        acceptor = Acceptor(config, handle_stream)
        acceptor.bind()
        acceptor.serve_forever()     # blocks until shutdown()
    """

    def __init__(
        self,
        config: ServerConfig,
        handle_stream: StreamHandler,
        stream_factory: StreamFactory = plain_stream,
    ):
        """
        Args:
            config: Host, port, backlog, accept timeout and admission cap.
            handle_stream: Runs on the worker thread with the new stream;
                           must close it.
            stream_factory: Wraps an accepted socket in a ByteStream.
        """
        self.config = config
        self.handle_stream = handle_stream
        self.stream_factory = stream_factory

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._listening = threading.Event()
        self._stopped = threading.Event()

        self._slots: Optional[threading.BoundedSemaphore] = None
        if config.max_connections:
            self._slots = threading.BoundedSemaphore(config.max_connections)

        self._active = 0
        self._active_lock = threading.Lock()
        self._idle = threading.Condition(self._active_lock)

        self._original_handlers: dict = {}

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once bound, even when 0 was asked for."""
        if self._socket is not None:
            name = self._socket.getsockname()
            return (name[0], name[1])
        return (self.config.host, self.config.port)

    @property
    def active_connections(self) -> int:
        with self._active_lock:
            return self._active

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._listening.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._stopped.wait(timeout)

    def wait_for_workers(self, timeout: Optional[float] = None) -> bool:
        """Block until no worker thread is running. False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._active == 0, timeout)

    # =========================================================================
    # SOCKET SETUP
    # =========================================================================

    def bind(self) -> None:
        """
        Create, bind and listen. Idempotent.

        Raises:
            BindError: Address in use, permission denied, bad address.
        """
        if self._socket is not None:
            return

        host, port = self.config.host, self.config.port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            # Restarting right after a stop would otherwise hit TIME_WAIT.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind((host, port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            raise BindError(host, port, e) from e

        sock.settimeout(self.config.accept_timeout)
        self._socket = sock

    # =========================================================================
    # ACCEPT LOOP
    # =========================================================================

    def serve_forever(self, install_signal_handlers: bool = False) -> None:
        """
        Accept connections until shutdown() is called.

        Args:
            install_signal_handlers: Stop on SIGINT/SIGTERM. Only honoured
                on the main thread; previous handlers are restored on exit.
        """
        self.bind()
        self._running = True
        self._stopped.clear()

        if install_signal_handlers:
            self._setup_signals()

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")
        self._listening.set()

        try:
            self._accept_loop()
        finally:
            self._cleanup()

    def _accept_loop(self) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                error = AcceptError(f"accept() failed: {e}")
                logger.error(str(error))
                # Back off briefly so a persistent failure (EMFILE) does not spin.
                self._stopped.wait(0.05)
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")
            self._dispatch(client_socket, (client_address[0], client_address[1]))

    def _dispatch(self, client_socket: socket.socket, address: Tuple[str, int]) -> None:
        try:
            stream = self.stream_factory(client_socket, address)
        except Exception:
            logger.exception(f"Could not set up stream for {address[0]}:{address[1]}")
            client_socket.close()
            return

        if self._slots is not None and not self._slots.acquire(blocking=False):
            logger.warning(
                f"Connection limit {self.config.max_connections} reached, "
                f"rejecting {address[0]}:{address[1]}"
            )
            self._reject(stream)
            return

        with self._active_lock:
            self._active += 1

        worker = threading.Thread(
            target=self._run_worker,
            args=(stream,),
            name=f"weehttp-conn-{address[0]}:{address[1]}",
            daemon=True,
        )
        try:
            worker.start()
        except RuntimeError:
            logger.exception("Could not start worker thread")
            self._release()
            stream.close()

    def _run_worker(self, stream: ByteStream) -> None:
        try:
            self.handle_stream(stream)
        except Exception:
            logger.exception("Worker crashed")
            stream.close()
        finally:
            self._release()

    def _release(self) -> None:
        if self._slots is not None:
            self._slots.release()
        with self._idle:
            self._active -= 1
            if self._active == 0:
                self._idle.notify_all()

    def _reject(self, stream: ByteStream) -> None:
        """
        Answer 503 without spawning a worker.

        The write is non-blocking so a stalled client cannot hold up the
        accept loop. TLS streams are closed outright: a response cannot
        be sent before a handshake.
        """
        if not stream.secure:
            stream.set_timeouts(0.0, 0.0)
            try:
                # Consume whatever request bytes already arrived so the
                # close below does not reset the 503 out of the peer's buffer.
                stream.read(self.config.effective_buffer_size)
            except OSError:
                pass
            try:
                stream.write(service_unavailable().serialize())
            except OSError as e:
                logger.debug(f"Could not send 503 to {stream.peer[0]}: {e}")
        stream.abort()

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    def shutdown(self) -> None:
        """Stop accepting. Safe from any thread, safe to call twice."""
        if self._running:
            logger.info("Shutting down acceptor...")
        self._running = False

    def _setup_signals(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, signal handlers not installed")
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, shutdown_handler)

    def _restore_signals(self) -> None:
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _cleanup(self) -> None:
        self._running = False
        self._restore_signals()
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._listening.clear()
        self._stopped.set()
        logger.info("Acceptor stopped")
