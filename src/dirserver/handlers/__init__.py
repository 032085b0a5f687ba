"""
Request handlers.

    directory.py   DirectoryHandler: files, listings, redirects, 404 page
"""

from .directory import DirectoryHandler, Outcome, decide, serve_directory

__all__ = [
    "DirectoryHandler",
    "Outcome",
    "decide",
    "serve_directory",
]
