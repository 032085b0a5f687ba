"""
=============================================================================
HTTP PROTOCOL MODULE
=============================================================================

Everything that turns bytes into HTTP messages and back:

    request.py       RequestParser, HTTPRequest, HTTPParseError
    response.py      HTTPResponse, ResponseBuilder, helper constructors
    status_codes.py  HTTPStatus

The file-serving logic never touches sockets or raw bytes; it receives an
HTTPRequest and returns an HTTPResponse built with the helpers below.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    redirect,
    error_text,
    forbidden,
    internal_error,
)
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "redirect",
    "error_text",
    "forbidden",
    "internal_error",

    # Status codes
    "HTTPStatus",
]
