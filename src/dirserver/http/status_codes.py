"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes this server can put on the wire, with reason phrases.

=============================================================================
WHERE EACH CODE COMES FROM
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK            - File bytes or a directory listing     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 301 Moved Permanently - Directory requested without "/"  │
    │        │ 302 Found             - Temporary redirects (builder)    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request   - Malformed request line               │
    │        │ 403 Forbidden     - Unreadable directory / file, or a    │
    │        │                     path that escapes the root           │
    │        │ 404 Not Found     - Nothing at the resolved path         │
    │        │ 405 Method Not Allowed - Unknown method token            │
    │        │ 408 Request Timeout    - Client too slow                 │
    │        │ 413 Payload Too Large  - Request over the size limit     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error    - Template or unexpected failure   │
    │        │ 503 Service Unavailable - Worker queue full              │
    │        │ 505 HTTP Version Not Supported                          │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes as an IntEnum.

    Members compare equal to their integer value:
        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301     # Directory path missing its trailing slash
    FOUND = 302

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403             # Permission denied or root escape
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      │
                      │      └── Reason phrase
                      └───────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
