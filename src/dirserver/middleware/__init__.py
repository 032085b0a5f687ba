"""
Request/response middleware.

    base.py      Middleware, MiddlewarePipeline
    logging.py   LoggingMiddleware (access log on "dirserver.access")
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
