"""
=============================================================================
DIRECTORY HANDLER
=============================================================================

Serves a directory tree: files verbatim, directories as HTML listings.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   request.path ("/sub%20dir")                                       │
    │        │                                                             │
    │        ▼                                                             │
    │   decode_path   →  "/sub dir"                                        │
    │        │                                                             │
    │        ▼                                                             │
    │   resolve_path  →  /srv/sub dir      (escapes root? → 403)          │
    │        │                                                             │
    │        ▼                                                             │
    │   classify      →  DIRECTORY | FILE | MISSING                        │
    │        │                                                             │
    │        ▼                                                             │
    │   decide        →  Outcome                                           │
    │        │                                                             │
    │        ├── RENDER_LISTING  dir + "/"     → 200 listing.html         │
    │        ├── REDIRECT        dir, no "/"   → 301 Location: path + "/" │
    │        ├── SERVE_FILE      file          → 200 raw bytes            │
    │        └── NOT_FOUND       missing       → 404 error.html           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Nothing is cached between requests: every request stats and reads the
filesystem again.

=============================================================================
CHECK-THEN-USE
=============================================================================

classify() and the read that follows are two separate system calls. A file
can disappear, or lose its permissions, in between. The classification is
therefore only advisory: the builders below treat a failed read as a normal
outcome and answer with a response.

    file read fails:       FileNotFoundError → 404 page
                           PermissionError   → 403 "Error: ..."
                           other OSError     → 500 "Error: ..."

    listing fails:         scandir() error   → 403 "Error: ..."
                           one entry fails   → entry skipped, logged

    template fails:        → 500 "Error: <rendering error>"

=============================================================================
"""

import os
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus,
    ok, redirect, forbidden, error_text,
)
from ..rendering import (
    TemplateRenderer, TemplateRenderError,
    LISTING_TEMPLATE, ERROR_TEMPLATE,
)
from ..resolver import (
    PathKind, PathTraversalError,
    decode_path, resolve_path, classify, names_directory,
)


logger = logging.getLogger(__name__)

PARENT_ENTRY = "../"


class Outcome(Enum):
    """The four things a request can turn into."""
    SERVE_FILE = "serve_file"
    RENDER_LISTING = "render_listing"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"


def decide(kind: PathKind, decoded_path: str) -> Outcome:
    """
    Pick the outcome for a classified location.

        DIRECTORY + "/sub/"  → RENDER_LISTING
        DIRECTORY + "/sub"   → REDIRECT
        FILE                 → SERVE_FILE
        MISSING              → NOT_FOUND
    """
    if kind is PathKind.DIRECTORY:
        if decoded_path.endswith("/"):
            return Outcome.RENDER_LISTING
        return Outcome.REDIRECT
    if kind is PathKind.FILE:
        return Outcome.SERVE_FILE
    return Outcome.NOT_FOUND


def _display_name(name: str) -> str:
    """Entry names that are not valid UTF-8 get replacement characters."""
    return name.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def _describe(error: OSError) -> str:
    """OS error text without the absolute path it was raised for."""
    return error.strerror or str(error)


class DirectoryHandler:
    """
    Handler that exposes root_dir over HTTP.

    =========================================================================
    USAGE
    =========================================================================

        renderer = TemplateRenderer()
        handler = DirectoryHandler("/srv", renderer)

        response = handler.handle(request)

    The handler keeps no per-request state. root_dir and renderer are set
    once and only read afterwards, so one instance is shared by all worker
    threads.

    =========================================================================
    """

    def __init__(self, root_dir: Union[str, Path], renderer: TemplateRenderer):
        """
        Args:
            root_dir: Directory to serve. Every request path is resolved
                      relative to it.
            renderer: Template collaborator for listings and error pages.

        Raises:
            ValueError: If root_dir is not a directory.
        """
        self.root_dir = Path(os.path.abspath(root_dir))
        self.renderer = renderer

        if not self.root_dir.is_dir():
            raise ValueError(f"Root directory does not exist: {root_dir}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Resolve request.path under root_dir and build the response."""
        decoded = decode_path(request.path)

        try:
            location = resolve_path(self.root_dir, decoded)
        except PathTraversalError:
            logger.warning(f"Path traversal attempt: {decoded!r}")
            return forbidden("Access denied")

        kind = classify(location, directory_only=names_directory(decoded))
        outcome = decide(kind, decoded)

        if outcome is Outcome.RENDER_LISTING:
            logger.debug(f"path: {decoded} || listing directory")
            return self._list_directory(location, decoded)

        if outcome is Outcome.REDIRECT:
            # The raw path keeps the client's percent-encoding intact
            location_header = request.path + "/"
            logger.debug(f"path: {decoded} || redirecting to {location_header}")
            return redirect(location_header, permanent=True)

        if outcome is Outcome.SERVE_FILE:
            logger.debug(f"path: {decoded} || reading file")
            return self._serve_file(location, decoded)

        logger.info(f"path: {decoded} || not found")
        return self._not_found(decoded)

    # =========================================================================
    # FILE RESPONSE
    # =========================================================================

    def _serve_file(self, location: Path, decoded_path: str) -> HTTPResponse:
        """
        Read the whole file and return it as the body.

        No Content-Type, no ranges, no streaming: the bytes are sent
        exactly as read.
        """
        try:
            content = location.read_bytes()
        except FileNotFoundError:
            logger.warning(f"path: {decoded_path} || vanished before it could be read")
            return self._not_found(decoded_path)
        except PermissionError as e:
            logger.warning(f"path: {decoded_path} || Error: {e}")
            return forbidden(_describe(e))
        except OSError as e:
            logger.error(f"path: {decoded_path} || Error: {e}")
            return error_text(HTTPStatus.INTERNAL_SERVER_ERROR, _describe(e))

        return ok(content)

    # =========================================================================
    # DIRECTORY LISTING
    # =========================================================================

    def list_entries(self, location: Path) -> list[str]:
        """
        Names of location's immediate children, ready for the listing.

        Directories carry a trailing "/". "../" is included unless location
        is the root. The result is sorted by code point, so "B" sorts before
        "a" and no locale is consulted.

        Raises:
            OSError: If the directory itself cannot be enumerated.
        """
        entries = []

        with os.scandir(location) as it:
            for entry in it:
                try:
                    is_dir = entry.is_dir()
                except OSError as e:
                    logger.warning(f"Skipping unreadable entry {entry.name!r}: {e}")
                    continue

                name = _display_name(entry.name)
                entries.append(name + "/" if is_dir else name)

        if location != self.root_dir:
            entries.append(PARENT_ENTRY)

        entries.sort()
        return entries

    def _list_directory(self, location: Path, decoded_path: str) -> HTTPResponse:
        """Render listing.html for location, or 403 if it can't be read."""
        try:
            entries = self.list_entries(location)
        except OSError as e:
            # Insufficient permissions, usually
            logger.warning(f"path: {decoded_path} || Error: {e}")
            return forbidden(_describe(e))

        return self._render(
            LISTING_TEMPLATE,
            {"current_path": decoded_path, "entries": entries},
            HTTPStatus.OK,
        )

    # =========================================================================
    # ERROR PAGES
    # =========================================================================

    def _not_found(self, decoded_path: str) -> HTTPResponse:
        """Render error.html with a 404."""
        return self._render(
            ERROR_TEMPLATE,
            {
                "error_code": str(int(HTTPStatus.NOT_FOUND)),
                "message": f"File or directory not found: {decoded_path}",
            },
            HTTPStatus.NOT_FOUND,
        )

    def _render(
        self,
        template_name: str,
        values: Mapping[str, Any],
        status: HTTPStatus,
    ) -> HTTPResponse:
        """
        Render a template into an HTML response with the given status.

        A rendering failure becomes a 500 carrying the rendering error as
        plain text.
        """
        try:
            html = self.renderer.render(template_name, values)
        except TemplateRenderError as e:
            logger.error(f"Failed to render {template_name}: {e.message}")
            return error_text(HTTPStatus.INTERNAL_SERVER_ERROR, e.message)

        return ResponseBuilder().status(status).html(html).build()


def serve_directory(
    root_dir: Union[str, Path],
    template_dir: Optional[Union[str, Path]] = None,
) -> DirectoryHandler:
    """
    Create a DirectoryHandler with its own TemplateRenderer.

    Example:
        handler = serve_directory("/srv")
        response = handler.handle(request)
    """
    return DirectoryHandler(root_dir, TemplateRenderer(template_dir))
