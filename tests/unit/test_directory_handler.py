"""
Unit tests for the directory handler: dispatch, files, listings, errors.
"""

import contextlib
import logging
import os
import re
from pathlib import Path

import pytest

from dirserver.handlers import DirectoryHandler, Outcome, decide, serve_directory
from dirserver.handlers import directory as directory_module
from dirserver.http import HTTPStatus, parse_request
from dirserver.rendering import TemplateRenderer
from dirserver.resolver import PathKind


def listed_entries(html: str) -> list:
    """Link texts of a rendered listing, in page order."""
    return re.findall(r'<li><a href="[^"]*">([^<]*)</a></li>', html)


class TestDecide:

    @pytest.mark.parametrize("kind, path, outcome", [
        (PathKind.DIRECTORY, "/", Outcome.RENDER_LISTING),
        (PathKind.DIRECTORY, "/sub/", Outcome.RENDER_LISTING),
        (PathKind.DIRECTORY, "/sub", Outcome.REDIRECT),
        (PathKind.FILE, "/a.txt", Outcome.SERVE_FILE),
        (PathKind.FILE, "/a.txt/", Outcome.SERVE_FILE),
        (PathKind.MISSING, "/missing", Outcome.NOT_FOUND),
        (PathKind.MISSING, "/missing/", Outcome.NOT_FOUND),
    ])
    def test_outcomes(self, kind, path, outcome):
        assert decide(kind, path) is outcome


class TestScenario:
    """Root holding a.txt = "hi" and an empty sub/."""

    def test_file(self, handler, make_request):
        response = handler.handle(make_request("/a.txt"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"hi"
        assert "Content-Type" not in response.headers

    def test_directory_without_slash_redirects(self, handler, make_request):
        response = handler.handle(make_request("/sub"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "/sub/"
        assert response.body == b""

    def test_empty_directory_lists_only_parent(self, handler, make_request):
        response = handler.handle(make_request("/sub/"))

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert listed_entries(response.text) == ["../"]
        assert "Index of /sub/" in response.text

    def test_missing(self, handler, make_request):
        response = handler.handle(make_request("/missing"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert "<h1>404</h1>" in response.text
        assert "/missing" in response.text


class TestFiles:

    def test_bytes_verbatim(self, served_root, handler, make_request):
        payload = bytes(range(256)) * 4
        (served_root / "blob.bin").write_bytes(payload)

        response = handler.handle(make_request("/blob.bin"))

        assert response.body == payload

    def test_empty_file(self, served_root, handler, make_request):
        (served_root / "empty").write_bytes(b"")

        response = handler.handle(make_request("/empty"))

        assert response.status == HTTPStatus.OK
        assert response.body == b""

    def test_file_with_trailing_slash_is_missing(self, handler, make_request):
        response = handler.handle(make_request("/a.txt/"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert "<h1>404</h1>" in response.text

    def test_file_with_trailing_dot_segment_is_missing(self, handler, make_request):
        response = handler.handle(make_request("/a.txt/."))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_method_is_not_checked(self, handler, make_request):
        response = handler.handle(make_request("/a.txt", method="POST"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"hi"

    def test_file_changes_are_seen_immediately(self, served_root, handler, make_request):
        assert handler.handle(make_request("/a.txt")).body == b"hi"

        (served_root / "a.txt").write_bytes(b"changed")

        assert handler.handle(make_request("/a.txt")).body == b"changed"

    def test_vanished_file_is_not_found(self, handler, make_request, monkeypatch):
        def vanish(self):
            raise FileNotFoundError(2, "No such file or directory")

        monkeypatch.setattr(Path, "read_bytes", vanish)

        response = handler.handle(make_request("/a.txt"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert "<h1>404</h1>" in response.text

    def test_permission_denied_is_forbidden(self, handler, make_request, monkeypatch):
        def deny(self):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(Path, "read_bytes", deny)

        response = handler.handle(make_request("/a.txt"))

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.body == b"Error: Permission denied"

    def test_other_read_error_is_internal_error(self, handler, make_request, monkeypatch):
        def fail(self):
            raise OSError(5, "Input/output error")

        monkeypatch.setattr(Path, "read_bytes", fail)

        response = handler.handle(make_request("/a.txt"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"Error: Input/output error"

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="root ignores file permissions",
    )
    def test_unreadable_file(self, served_root, handler, make_request):
        secret = served_root / "secret.txt"
        secret.write_text("x")
        secret.chmod(0)
        try:
            response = handler.handle(make_request("/secret.txt"))
        finally:
            secret.chmod(0o644)

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.text.startswith("Error: ")


class TestListings:

    def test_root_has_no_parent_entry(self, handler, make_request):
        response = handler.handle(make_request("/"))

        assert listed_entries(response.text) == ["a b/", "a.txt", "docs/", "sub/"]

    def test_code_point_order_with_parent(self, served_root, handler):
        entries = handler.list_entries(served_root / "docs")

        assert entries == ["../", "B.txt", "a.txt", "c/"]

    def test_listing_hrefs(self, handler, make_request):
        html = handler.handle(make_request("/")).text

        assert 'href="a%20b/"' in html
        assert 'href="docs/"' in html

    def test_percent_decoded_directory(self, handler, make_request):
        response = handler.handle(make_request("/a%20b/"))

        assert response.status == HTTPStatus.OK
        assert "Index of /a b/" in response.text
        assert listed_entries(response.text) == ["../", "note.txt"]

    def test_redirect_keeps_request_encoding(self, handler, make_request):
        response = handler.handle(make_request("/a%20b"))

        assert response.status == HTTPStatus.MOVED_PERMANENTLY
        assert response.headers["Location"] == "/a%20b/"

    def test_redirect_drops_query(self, handler):
        request = parse_request(b"GET /sub?sort=name HTTP/1.1\r\nHost: t\r\n\r\n")

        response = handler.handle(request)

        assert response.headers["Location"] == "/sub/"

    def test_query_does_not_affect_listing(self, handler):
        request = parse_request(b"GET /sub/?sort=name HTTP/1.1\r\nHost: t\r\n\r\n")

        response = handler.handle(request)

        assert listed_entries(response.text) == ["../"]

    def test_new_entries_are_seen_immediately(self, served_root, handler, make_request):
        (served_root / "sub" / "late.txt").write_text("x")

        response = handler.handle(make_request("/sub/"))

        assert listed_entries(response.text) == ["../", "late.txt"]

    def test_enumeration_failure_is_forbidden(self, handler, make_request, monkeypatch):
        def deny(path):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(directory_module.os, "scandir", deny)

        response = handler.handle(make_request("/docs/"))

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.body == b"Error: Permission denied"

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0,
        reason="root ignores directory permissions",
    )
    def test_unreadable_directory(self, served_root, handler, make_request):
        locked = served_root / "locked"
        locked.mkdir()
        locked.chmod(0)
        try:
            response = handler.handle(make_request("/locked/"))
        finally:
            locked.chmod(0o755)

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.text.startswith("Error: ")

    def test_broken_entry_is_skipped(self, served_root, handler, make_request, monkeypatch, caplog):
        class Entry:
            def __init__(self, name, is_dir):
                self.name = name
                self._is_dir = is_dir

            def is_dir(self):
                if self._is_dir is None:
                    raise OSError(5, "Input/output error")
                return self._is_dir

        entries = [Entry("ok.txt", False), Entry("broken", None), Entry("dir", True)]
        monkeypatch.setattr(
            directory_module.os, "scandir",
            lambda path: contextlib.nullcontext(entries),
        )
        caplog.set_level(logging.WARNING, logger="dirserver.handlers.directory")

        response = handler.handle(make_request("/sub/"))

        assert response.status == HTTPStatus.OK
        assert listed_entries(response.text) == ["../", "dir/", "ok.txt"]
        assert "broken" in caplog.text

    def test_undecodable_name_is_replaced(self, served_root, handler):
        name = os.fsdecode(b"bad\xff.txt")
        try:
            (served_root / "sub" / name).write_text("x")
        except (OSError, UnicodeEncodeError):
            pytest.skip("filesystem rejects non-UTF-8 names")

        assert handler.list_entries(served_root / "sub") == ["../", "bad�.txt"]


class TestTraversal:

    @pytest.mark.parametrize("path", [
        "/../etc/passwd",
        "/%2e%2e/%2e%2e/etc/passwd",
        "/%2E%2E%2Fetc%2Fpasswd",
        "/sub/../../etc/passwd",
        "/..",
    ])
    def test_escape_is_forbidden(self, handler, make_request, path, caplog):
        caplog.set_level(logging.WARNING, logger="dirserver.handlers.directory")

        response = handler.handle(make_request(path))

        assert response.status == HTTPStatus.FORBIDDEN
        assert response.body == b"Error: Access denied"
        assert "traversal" in caplog.text

    def test_escape_reads_nothing(self, handler, make_request, monkeypatch):
        def forbidden_read(self):
            raise AssertionError(f"read {self}")

        monkeypatch.setattr(Path, "read_bytes", forbidden_read)

        handler.handle(make_request("/../a.txt"))

    def test_dot_segments_inside_root(self, handler, make_request):
        response = handler.handle(make_request("/sub/../a.txt"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"hi"

    def test_double_slash_stays_in_root(self, handler, make_request):
        response = handler.handle(make_request("//etc/passwd"))

        assert response.status == HTTPStatus.NOT_FOUND

    def test_double_slash_through_parser(self, handler):
        request = parse_request(b"GET //docs/a.txt HTTP/1.1\r\nHost: t\r\n\r\n")

        response = handler.handle(request)

        assert response.status == HTTPStatus.OK
        assert response.body == b"lower"

    def test_double_slash_directory_through_parser(self, handler):
        request = parse_request(b"GET //docs/ HTTP/1.1\r\nHost: t\r\n\r\n")

        response = handler.handle(request)

        assert listed_entries(response.text) == ["../", "B.txt", "a.txt", "c/"]


class TestTemplateFailures:

    @pytest.fixture
    def broken_handler(self, served_root: Path, tmp_path: Path) -> DirectoryHandler:
        templates = tmp_path / "broken-templates"
        templates.mkdir()
        (templates / "listing.html").write_text("{% for entry in %}")
        (templates / "error.html").write_text("{{ missing_value }}")
        return DirectoryHandler(served_root, TemplateRenderer(templates))

    def test_listing_template_failure(self, broken_handler, make_request):
        response = broken_handler.handle(make_request("/sub/"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.text.startswith("Error: listing.html: ")
        assert response.headers["Content-Type"].startswith("text/plain")

    def test_error_template_failure(self, broken_handler, make_request):
        response = broken_handler.handle(make_request("/missing"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert "missing_value" in response.text

    def test_missing_template(self, served_root, tmp_path, make_request):
        empty = tmp_path / "no-templates"
        empty.mkdir()
        handler = DirectoryHandler(served_root, TemplateRenderer(empty))

        response = handler.handle(make_request("/"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"Error: Template not found: listing.html"

    def test_files_do_not_need_templates(self, broken_handler, make_request):
        assert broken_handler.handle(make_request("/a.txt")).body == b"hi"


class TestLogging:

    def test_decisions_logged_at_debug(self, handler, make_request, caplog):
        caplog.set_level(logging.DEBUG, logger="dirserver.handlers.directory")

        handler.handle(make_request("/sub/"))
        handler.handle(make_request("/sub"))
        handler.handle(make_request("/a.txt"))

        assert "path: /sub/ || listing directory" in caplog.text
        assert "path: /sub || redirecting to /sub/" in caplog.text
        assert "path: /a.txt || reading file" in caplog.text


class TestConstruction:

    def test_root_must_exist(self, tmp_path, renderer):
        with pytest.raises(ValueError):
            DirectoryHandler(tmp_path / "nowhere", renderer)

    def test_relative_root_is_made_absolute(self, served_root, renderer, monkeypatch):
        monkeypatch.chdir(served_root.parent)

        handler = DirectoryHandler(served_root.name, renderer)

        assert handler.root_dir == served_root

    def test_serve_directory_factory(self, served_root, make_request):
        handler = serve_directory(served_root)

        assert handler.handle(make_request("/a.txt")).body == b"hi"
