"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log record per request on the "dirserver.access" logger.

    text:  127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "GET /sub/" 200 512 0.84ms
    json:  {"request_id": "3f2a9c1e", "method": "GET", "path": "/sub/", ...}

The access logger is separate from the module loggers so it can be routed
or silenced on its own:

    logging.getLogger("dirserver.access").setLevel(logging.WARNING)

=============================================================================
"""

import time
import json
import uuid
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("dirserver.access")


@dataclass
class RequestLog:
    """A single access log entry."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-style line with the duration appended."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Times each request and writes an access log line.

    Add it first so the timing covers everything else:

        pipeline.add(LoggingMiddleware(log_format="json"))

    Args:
        log_format: "text" or "json".
        include_request_id: Echo the generated id in an X-Request-ID header.
        log_level: Level used for the access records.
        skip_paths: Raw request paths that are not logged.
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0] or "-",
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
