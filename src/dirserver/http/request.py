"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of an HTTP/1.1 request into an HTTPRequest.

=============================================================================
WHAT THE FILE SERVER NEEDS FROM A REQUEST
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    GET /docs/a%20b/?sort=name HTTP/1.1\r\n                          │
    │    ─┬─ ──────┬───── ────┬────  ────┬───                             │
    │     │        │          │          │                                 │
    │   Method   Path       Query     Version                              │
    │            (raw)      (ignored by the file server)                   │
    │                                                                      │
    │    Host: localhost:8000\r\n                                          │
    │    Connection: keep-alive\r\n                                        │
    │    \r\n                                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The path is kept exactly as the client sent it, percent-escapes and all.
Decoding it and mapping it onto the filesystem is the directory handler's
job (see dirserver.resolver), so this module never unquotes the path and
never inspects it for ".." segments.

=============================================================================
PARSING CHALLENGES
=============================================================================

1. LINE ENDINGS: the header block ends at the first \r\n\r\n.
2. CASE: header names are case-insensitive, so they are stored lowercase.
3. BODY: the length comes from Content-Length only. A file server ignores
   bodies, but they must still be consumed to keep keep-alive in sync.
4. LIMITS: oversized requests are rejected with 413.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, urlsplit
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the client should receive:

        400 Bad Request                - Malformed request syntax
        405 Method Not Allowed         - Unknown method token
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Unknown HTTP version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, HEAD, POST, ... (the file server treats them
                        all alike)

        path:           Raw request path WITHOUT query string or fragment,
                        still percent-encoded: "/a%20b/" not "/a b/"

        version:        "HTTP/1.1" or "HTTP/1.0", drives keep-alive

        headers:        Dictionary with LOWERCASE keys

        query_params:   Parsed query string, "?a=1&a=2" → {"a": ["1", "2"]}

        body:           Raw body bytes (Content-Length bytes)

        client_address: (ip, port) of the peer, used by the access log

        raw:            Original request bytes

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = b""

    @property
    def host(self) -> str:
        """The Host header value."""
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        """The User-Agent header value."""
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

            HTTP/1.1: keep alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check                → HTTPParseError(413)
        2. Find \r\n\r\n separator   → HTTPParseError(400) if missing
        3. Parse request line        → HTTPParseError(400/405/505)
        4. Parse headers             (lowercase names, folded duplicates)
        5. Extract Content-Length body
        6. Build HTTPRequest

    ==========================================================================
    """

    VALID_METHODS = {
        "GET",
        "HEAD",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    # METHOD SP REQUEST-TARGET SP HTTP-VERSION
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Args:
            max_request_size: Maximum allowed request size in bytes.
                              Larger requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Client's (ip, port) tuple.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Request targets are ASCII on the wire; anything else is replaced
        # rather than rejected so the path decoder sees a best-effort string.
        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse the HTTP request line.

            "GET /a%20b/?x=1 HTTP/1.1"  →  ("GET", "/a%20b/", {"x": ["1"]}, "HTTP/1.1")

        Raises:
            HTTPParseError: If the line is malformed.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        target = target.split("#", 1)[0]
        if target.startswith("/"):
            # Origin form: "//docs/a.txt" is a path, not a netloc
            path, _, query = target.partition("?")
        else:
            # Absolute form; urlsplit (not urlparse) so ";" stays in the path
            parsed = urlsplit(target)
            path, query = parsed.path, parsed.query
        path = path or "/"
        query_params = parse_qs(query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dictionary with lowercase names.

        Handles obsolete line folding (continuation lines starting with
        whitespace) and joins repeated headers with ", ".
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # Lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
