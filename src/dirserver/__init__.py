"""
=============================================================================
DIRSERVER - Directory-Listing HTTP/1.1 File Server
=============================================================================

Exposes a local directory tree over HTTP: files are sent verbatim,
directories are rendered as HTML listings from Jinja2 templates.

=============================================================================
WHAT A REQUEST TURNS INTO
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   GET /a.txt          file             200  raw bytes               │
    │   GET /sub            directory        301  Location: /sub/         │
    │   GET /sub/           directory        200  HTML listing            │
    │   GET /missing        nothing          404  HTML error page         │
    │   GET /locked/        unreadable dir   403  "Error: ..."            │
    │   GET /../etc/passwd  outside root     403  "Error: Access denied"  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    dirserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m dirserver)
    ├── server.py            # DirectoryServer: transport + handler wiring
    ├── config.py            # ServerConfig dataclass
    ├── resolver.py          # Path decoding, resolution, classification
    ├── rendering.py         # TemplateRenderer (Jinja2)
    ├── templates/           # Bundled listing.html and error.html
    ├── handlers/
    │   └── directory.py     # DirectoryHandler: the request pipeline
    ├── core/                # Sockets, connections, worker threads
    ├── http/                # Request parsing, response building
    └── middleware/          # Middleware chain, access log

=============================================================================
QUICK START
=============================================================================

    $ dirserver                      # serve the current directory on :8000
    $ dirserver 9000 -d ~/public     # another port and directory

    from dirserver import DirectoryServer, ServerConfig

    server = DirectoryServer(ServerConfig(root_dir="/srv", port=8000))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"
__author__ = "dirserver contributors"

from .server import DirectoryServer, create_server
from .config import ServerConfig
from .handlers import DirectoryHandler, serve_directory
from .rendering import TemplateRenderer, TemplateRenderError
from .resolver import PathTraversalError

__all__ = [
    "DirectoryServer",
    "create_server",
    "ServerConfig",
    "DirectoryHandler",
    "serve_directory",
    "TemplateRenderer",
    "TemplateRenderError",
    "PathTraversalError",
    "__version__",
]
