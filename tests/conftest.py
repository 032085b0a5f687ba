"""
pytest configuration and fixtures.
"""

import threading
from pathlib import Path
from typing import Callable, Generator

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dirserver import DirectoryServer, ServerConfig, create_server
from dirserver.handlers import DirectoryHandler
from dirserver.http import HTTPRequest
from dirserver.rendering import TemplateRenderer


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET for a directory with an escaped space and a query."""
    return (
        b"GET /docs/a%20b/?sort=name HTTP/1.1\r\n"
        b"Host: localhost:8000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def served_root(tmp_path: Path) -> Path:
    """
    A small tree to serve:

        a.txt           "hi"
        sub/            (empty)
        docs/B.txt
        docs/a.txt
        docs/c/
        a b/note.txt
    """
    root = tmp_path / "srv"
    root.mkdir()

    (root / "a.txt").write_bytes(b"hi")
    (root / "sub").mkdir()

    docs = root / "docs"
    docs.mkdir()
    (docs / "B.txt").write_text("upper")
    (docs / "a.txt").write_text("lower")
    (docs / "c").mkdir()

    spaced = root / "a b"
    spaced.mkdir()
    (spaced / "note.txt").write_text("note")

    return root


@pytest.fixture
def renderer() -> TemplateRenderer:
    """Renderer over the bundled templates."""
    return TemplateRenderer()


@pytest.fixture
def handler(served_root: Path, renderer: TemplateRenderer) -> DirectoryHandler:
    return DirectoryHandler(served_root, renderer)


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """Build an HTTPRequest for a raw (still percent-encoded) path."""
    def _make(path: str, method: str = "GET") -> HTTPRequest:
        return HTTPRequest(method=method, path=path, client_address=("127.0.0.1", 50000))
    return _make


class LiveServer:
    """DirectoryServer running in a background thread."""

    def __init__(self, server: DirectoryServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def start_live_server(served_root: Path) -> Generator[Callable[..., LiveServer], None, None]:
    """
    Factory for servers on an OS-assigned port, serving served_root.

    Extra middleware passed to the factory is installed before startup.
    """
    started = []

    def _start(*middleware) -> LiveServer:
        server = create_server(ServerConfig(
            host="127.0.0.1",
            port=0,
            root_dir=str(served_root),
            min_workers=2,
            max_workers=4,
            log_level="WARNING",
        ))
        if middleware:
            server.use(*middleware)

        live = LiveServer(server)
        live.start()
        started.append(live)
        return live

    yield _start

    for live in started:
        live.stop()


@pytest.fixture
def live_server(start_live_server) -> LiveServer:
    return start_live_server()
