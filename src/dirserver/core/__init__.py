"""
=============================================================================
TRANSPORT CORE
=============================================================================

Sockets and threads; nothing in here knows about files or templates.

    SocketServer ──accept──► Connection ──submit──► ThreadPool worker
      (listener)            (one client)            (runs the request loop)

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, Worker, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Worker",
    "WorkerState",
]
