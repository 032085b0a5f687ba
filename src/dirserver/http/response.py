"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds HTTP/1.1 responses with proper formatting per RFC 7230.

=============================================================================
WHAT A FILE SERVER SENDS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   RAW BYTES        file contents, no Content-Type                   │
    │                    ResponseBuilder().body(data)                      │
    │                                                                      │
    │   RENDERED HTML    directory listing or 404 page                    │
    │                    ResponseBuilder().html(markup)                    │
    │                                                                      │
    │   PLAIN TEXT       "Error: ..." for 403 / 500 failures              │
    │                    ResponseBuilder().text(message)                   │
    │                                                                      │
    │   (EMPTY)          301 redirect, only a Location header              │
    │                    ResponseBuilder().redirect(url, permanent=True)   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Serialization always adds Content-Length, Date and Server:

    HTTP/1.1 200 OK\r\n
    Content-Length: 2\r\n
    Date: Wed, 01 Jan 2026 12:00:00 GMT\r\n
    Server: dirserver/1.0\r\n
    \r\n
    hi

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Union

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "dirserver/1.0"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder (or the helpers at the bottom of this module) to
    construct one; to_bytes() turns it into wire format.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """The status line, e.g. "HTTP/1.1 301 Moved Permanently"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def text(self) -> str:
        """The body decoded as UTF-8 (lossy), handy in logs and tests."""
        return self.body.decode("utf-8", errors="replace")

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the response to bytes for socket.sendall().

        Content-Length, Date and Server are filled in unless the handler
        already set them. The handler's headers dict is not modified.
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

    ==========================================================================
    USAGE EXAMPLES
    ==========================================================================

    # File contents, no Content-Type
    ResponseBuilder().body(path.read_bytes()).build()

    # Rendered listing
    ResponseBuilder().html(renderer.render("listing.html", values)).build()

    # Plain-text failure
    ResponseBuilder().status(HTTPStatus.FORBIDDEN).text("Error: ...").build()

    # Trailing-slash redirect
    ResponseBuilder().redirect("/sub/", permanent=True).build()

    ==========================================================================
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""
        self._server_name = server_name

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        """Set the HTTP status code."""
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        """Add a single response header."""
        self._headers[name] = value
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """
        Set the response body verbatim.

        No Content-Type is added; file responses rely on this.
        """
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        """Set a plain text body and its Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def html(self, html: str) -> "ResponseBuilder":
        """Set an HTML body and its Content-Type."""
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def redirect(self, location: str, permanent: bool = False) -> "ResponseBuilder":
        """
        Create a redirect response.

        =====================================================================
        REDIRECT STATUS CODES
        =====================================================================

        301 Moved Permanently:
            - Used for "/dir" → "/dir/"; browsers remember it
        302 Found:
            - Temporary; the original URL stays canonical

        =====================================================================

        The body is left empty.
        """
        self._status = HTTPStatus.MOVED_PERMANENTLY if permanent else HTTPStatus.FOUND
        self._headers["Location"] = location
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Set Connection: close."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        """Build and return the HTTPResponse object."""
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        """Build and serialize in one step."""
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are always GMT, never local time.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for the responses the file server produces. Error helpers use
# plain-text bodies of the form "Error: <message>".
#
# =============================================================================

def ok(body: Union[str, bytes] = b"") -> HTTPResponse:
    """200 OK with the body verbatim and no Content-Type."""
    return ResponseBuilder().status(HTTPStatus.OK).body(body).build()


def redirect(location: str, permanent: bool = False) -> HTTPResponse:
    """301 or 302 with a Location header and an empty body."""
    return ResponseBuilder().redirect(location, permanent).build()


def error_text(status: HTTPStatus, message: str) -> HTTPResponse:
    """Any status with a plain-text "Error: <message>" body."""
    return ResponseBuilder().status(status).text(f"Error: {message}").build()


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    """403 Forbidden, plain text."""
    return error_text(HTTPStatus.FORBIDDEN, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 Internal Server Error, plain text."""
    return error_text(HTTPStatus.INTERNAL_SERVER_ERROR, message)
