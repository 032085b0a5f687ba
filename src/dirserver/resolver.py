"""
=============================================================================
PATH DECODING AND RESOLUTION
=============================================================================

Maps a raw request path onto a location under the served root.

    raw path            decode_path()        resolve_path()        classify()
    "/a%20b/"    ───►   "/a b/"       ───►   /srv/a b       ───►   DIRECTORY

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /../../etc/passwd HTTP/1.1
    GET /%2e%2e/%2e%2e/etc/passwd HTTP/1.1

Both decode to a path containing "..". Joined naively with the root they
point outside it. resolve_path() collapses the path lexically and refuses
anything that does not stay under the root, before any filesystem call.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  root = /srv                                                        │
    │                                                                      │
    │  "/sub/../a.txt"   → /srv/a.txt          OK                         │
    │  "/../etc/passwd"  → /etc/passwd         PathTraversalError         │
    │  "//etc/passwd"    → /srv/etc/passwd     OK (leading "/" stripped)  │
    └─────────────────────────────────────────────────────────────────────┘

Symlinks inside the root are followed by the OS as usual; the check is on
the requested name, not on where a link points.

A trailing "/" survives decoding but not resolution. names_directory()
reports it so classify() can treat "/a.txt/" as missing, as the OS would.

=============================================================================
"""

import os
from enum import Enum
from pathlib import Path
from urllib.parse import unquote


class PathKind(Enum):
    """What a resolved location turned out to be."""
    DIRECTORY = "directory"
    FILE = "file"
    MISSING = "missing"


class PathTraversalError(ValueError):
    """Raised when a request path resolves outside the served root."""

    def __init__(self, request_path: str):
        super().__init__(f"Path escapes the served directory: {request_path}")
        self.request_path = request_path


def decode_path(raw_path: str) -> str:
    """
    Percent-decode a request path.

    Decoded bytes that are not valid UTF-8 become U+FFFD instead of
    failing the request. No dot-segment or case normalization happens
    here.

        >>> decode_path("/a%20b/")
        '/a b/'
        >>> decode_path("/%ff.txt") == "/�.txt"
        True
    """
    return unquote(raw_path or "/", encoding="utf-8", errors="replace")


def resolve_path(root: Path, decoded_path: str) -> Path:
    """
    Join the decoded request path onto the root.

    Args:
        root: Absolute, normalized root directory.
        decoded_path: Output of decode_path().

    Returns:
        The absolute filesystem location the request refers to.

    Raises:
        PathTraversalError: If the location is outside root.
    """
    root_str = os.fspath(root)
    relative = decoded_path.lstrip("/")
    candidate = os.path.normpath(os.path.join(root_str, relative))

    if candidate != root_str and not candidate.startswith(root_str.rstrip(os.sep) + os.sep):
        raise PathTraversalError(decoded_path)

    return Path(candidate)


def names_directory(decoded_path: str) -> bool:
    """
    True if the path can only name a directory.

    A trailing "/" (or a final "." or ".." segment) needs a directory on
    disk; "/a.txt/" does not exist even when "/a.txt" does. resolve_path()
    collapses these forms, so the handler asks here before classify().
    """
    return decoded_path.endswith("/") or decoded_path.rsplit("/", 1)[-1] in (".", "..")


def classify(location: Path, directory_only: bool = False) -> PathKind:
    """
    Classify a location as DIRECTORY, FILE or MISSING.

    Anything whose metadata cannot be read (permission denied on a parent,
    a name the OS cannot represent) counts as MISSING; a permission problem
    on the target itself only shows up when it is actually read. With
    directory_only, a file counts as MISSING too.
    """
    try:
        if location.is_dir():
            return PathKind.DIRECTORY
        if location.exists() and not directory_only:
            return PathKind.FILE
    except (OSError, ValueError):
        pass
    return PathKind.MISSING
