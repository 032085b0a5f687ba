"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket: bind, listen, accept, and hand every accepted
client to a callback as a Connection.

    start(callback)
        │
        ├── socket() + SO_REUSEADDR + TCP_NODELAY
        ├── bind((host, port))         ← errors are logged and re-raised
        ├── listen(backlog)
        ├── install SIGINT/SIGTERM     ← main thread only
        │
        └── accept loop ──► Connection(...) ──► callback(conn)
                 ▲                                    │
                 └──────── 1s accept timeout ◄────────┘
                           (re-checks the running flag)

Port 0 asks the OS for a free port; `address` reports the port actually
bound once start() has bound the socket, and `wait_until_ready()` lets
another thread block until that has happened.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Accepts TCP connections for the HTTP layer.

    Usage:
        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) actually bound, or the configured one before start()."""
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restart without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up once a second to notice shutdown()
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """Turn SIGINT/SIGTERM into shutdown(). Only possible in the main thread."""
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_ready: Optional[Callable[[], None]] = None,
    ):
        """
        Bind, listen and accept until shutdown().

        Args:
            connection_handler: Called with every accepted Connection.
            on_ready: Called once the socket is listening, before the
                      first accept().

        Raises:
            OSError: If the address cannot be bound (in use, no permission,
                     unknown host).
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._setup_signals()

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")
        self._ready.set()

        try:
            if on_ready is not None:
                on_ready()
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Safe to call more than once and from any thread."""
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is bound and listening."""
        return self._ready.wait(timeout)
