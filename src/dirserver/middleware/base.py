"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

A middleware sees every request before the directory handler does and every
response after it:

    ┌──────────────────────────────────────────────────────────────────┐
    │  LoggingMiddleware                                               │
    │  ┌────────────────────────────────────────────────────────────┐  │
    │  │  (more middleware, in the order added)                     │  │
    │  │  ┌──────────────────────────────────────────────────────┐  │  │
    │  │  │              DirectoryHandler.handle                 │  │  │
    │  │  └──────────────────────────────────────────────────────┘  │  │
    │  └────────────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────────────┘

The first middleware added is the outermost one.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Base class for middleware.

    Subclasses implement __call__ and either return a response of their
    own or call next(request) and return (possibly after modifying) what
    it gives back:

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                start = time.time()
                response = next(request)
                response.set_header("Server-Timing", f"total;dur={...}")
                return response
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        pass

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware wrapped around a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        handle = pipeline.wrap(directory_handler.handle)
        response = handle(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware (innermost so far). Returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the call chain around handler.

        Wrapping happens in reverse so that [MW1, MW2] runs as
        MW1 → MW2 → handler.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)
