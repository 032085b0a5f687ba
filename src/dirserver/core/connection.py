"""
=============================================================================
CLIENT CONNECTIONS
=============================================================================

Wraps an accepted client socket with request framing and keep-alive
bookkeeping.

=============================================================================
FRAMING A REQUEST OUT OF A BYTE STREAM
=============================================================================

TCP delivers bytes, not messages. A single GET for a listing may arrive in
one recv() or in five, and the tail of one request may share a recv() with
the head of the next one on a keep-alive connection.

    recv() #1:  "GET /sub/ HTTP/1.1\r\nHo"
    recv() #2:  "st: localhost\r\n\r\nGET /a.txt HTTP/1.1\r\n..."
                                     └──────── next request ───────┘

read_request() therefore buffers until the header terminator shows up,
reads Content-Length more bytes for the body, and keeps whatever follows
in _buffer for the next call.

=============================================================================
LIFECYCLE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                  │
              └──────────────────────────────────────────────────┘
                             any state ──► CLOSING ──► CLOSED

The first request waits up to `timeout` seconds; later requests on the same
connection only wait `keep_alive_timeout`, and an idle keep-alive
connection is closed quietly instead of being reported as an error.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Where a connection is in its request/response cycle."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    One accepted client socket.

    Attributes:
        socket: The client socket returned by accept().
        address: Client's (ip, port) tuple.
        id: Short random identifier used in log lines.
        state: Current ConnectionState.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers plus Content-Length body).

        Returns:
            The request bytes, or None if the client closed the connection
            or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            ValueError: If the buffered request grows past max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._append(chunk)

            body_start = self._buffer.find(b"\r\n\r\n") + 4
            content_length = self._parse_content_length(self._buffer[:body_start])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # The parser reports the short body
                self._append(chunk)

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _append(self, chunk: bytes):
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    def _recv(self) -> bytes:
        """recv() that maps a reset connection to end-of-stream."""
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.last_activity = time.time()
        return data

    @staticmethod
    def _parse_content_length(header_section: bytes) -> int:
        """Content-Length from the raw header block, 0 if absent or bad."""
        text = header_section.decode("latin-1").lower()
        for line in text.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING AND CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response.

        Returns:
            False if the client went away mid-send.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False
        self.last_activity = time.time()
        return True

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """Half-close, drain what the client still sends, then close."""
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
