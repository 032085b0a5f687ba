"""
=============================================================================
DIRECTORY SERVER
=============================================================================

Wires the transport, the middleware chain and the DirectoryHandler into a
runnable server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer.accept ──► ThreadPool.submit(_process_connection)    │
    │                                         │                            │
    │                                         ▼                            │
    │                         ┌── Connection.read_request ◄──┐            │
    │                         │                              │ keep-alive │
    │                         ▼                              │            │
    │                  parse_request                         │            │
    │                         │                              │            │
    │                         ▼                              │            │
    │                  LoggingMiddleware                     │            │
    │                         │                              │            │
    │                         ▼                              │            │
    │                  DirectoryHandler.handle               │            │
    │                         │                              │            │
    │                         ▼                              │            │
    │                  Connection.send_response ─────────────┘            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Everything that can fail at startup (bad config, missing root, unreadable
template directory, unbindable address) fails before the first request is
accepted. After that, every failure is turned into a response.

=============================================================================
"""

import logging
from typing import Optional, Callable, Tuple

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool
from .handlers import DirectoryHandler
from .http import (
    HTTPRequest, HTTPParseError, parse_request,
    HTTPResponse, ResponseBuilder, HTTPStatus, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware
from .rendering import TemplateRenderer


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class DirectoryServer:
    """
    HTTP/1.1 server exposing config.root_dir.

    =========================================================================
    USAGE
    =========================================================================

        server = DirectoryServer(ServerConfig(root_dir="/srv", port=8000))
        server.run()            # blocks until Ctrl+C / SIGTERM / stop()

    Extra middleware goes inside the access log:

        server.use(MyMiddleware())

    =========================================================================
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        renderer: Optional[TemplateRenderer] = None,
        access_log: bool = True,
    ):
        """
        Args:
            config: Server configuration, validated immediately.
            renderer: Template collaborator. Built from config.template_dir
                      when not given.
            access_log: Install LoggingMiddleware as the outermost layer.

        Raises:
            ValueError: If the configuration is invalid.
            TemplateRenderError: If the template directory is unusable.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.renderer = renderer or TemplateRenderer(self.config.template_dir)
        self.directory_handler = DirectoryHandler(self.config.root_dir, self.renderer)

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )

        self._middleware = MiddlewarePipeline()
        if access_log:
            self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

    def use(self, *middleware: Middleware) -> "DirectoryServer":
        """Add middleware. Returns self for chaining."""
        self._middleware.use(*middleware)
        return self

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port once a port-0 server is up."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running and self._socket_server.is_running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is up (for embedding and tests)."""
        return self._socket_server.wait_until_ready(timeout)

    def run(self):
        """
        Serve until stopped.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._setup_logging()
        self._handler = self._middleware.wrap(self.directory_handler.handle)

        self._running = True
        self._thread_pool.start()

        try:
            self._socket_server.start(self._handle_connection, on_ready=self._print_startup_banner)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self):
        """Ask a running server to stop; run() returns shortly after."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.address
        print(f"Serving HTTP on {host} port {port} (http://{host}:{port}/) ...", flush=True)
        logger.info(f"Serving {self.config.root_dir}")

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logging.getLogger("dirserver").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        logger.debug(f"Thread pool stats: {self._thread_pool.stats}")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Runs on the accept thread: hand the connection to a worker."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(
                f"[{conn.id}] Thread pool full ({self._thread_pool.pending_tasks} queued), "
                "rejecting connection"
            )
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs on a worker thread).

            read → parse → handle → send → (keep-alive ? read : close)
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                    if raw_request is None:
                        break

                    try:
                        request = parse_request(
                            raw_request, conn.address, self.config.max_request_size
                        )
                    except HTTPParseError as e:
                        self._send_error(conn, e.status_code, str(e))
                        break

                    response = self._dispatch(conn, request)
                    keep_alive = request.is_keep_alive and self.config.keep_alive

                    if keep_alive:
                        response.headers.setdefault("Connection", "keep-alive")
                        response.headers.setdefault(
                            "Keep-Alive",
                            f"timeout={int(self.config.keep_alive_timeout)}"
                        )
                    else:
                        response.headers["Connection"] = "close"

                    if request.method == "HEAD":
                        response.headers.setdefault("Content-Length", str(len(response.body)))
                        response.body = b""

                    if not conn.send_response(response.to_bytes(self.config.server_name)):
                        break

                    if not keep_alive:
                        break

                    conn.set_keep_alive()

                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break

                except ValueError as e:
                    # Request grew past max_request_size while buffering
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                    break

                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

    def _dispatch(self, conn: Connection, request: HTTPRequest) -> HTTPResponse:
        """Run the handler chain; anything it raises becomes a plain 500."""
        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            return internal_error()

    def _send_error(self, conn: Connection, status: int, message: str):
        """Plain-text error for failures before the handler runs."""
        response = (ResponseBuilder()
            .status(HTTPStatus(status))
            .text(f"Error: {message}")
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))


def create_server(config: Optional[ServerConfig] = None, **kwargs) -> DirectoryServer:
    """
    Build a DirectoryServer.

    Example:
        server = create_server(ServerConfig(root_dir="/srv", port=9000))
        server.run()
    """
    return DirectoryServer(config, **kwargs)
