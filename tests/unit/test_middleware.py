"""
Unit tests for the middleware pipeline and the access log.
"""

import json
import logging

import pytest

from dirserver.http import HTTPRequest, HTTPResponse, HTTPStatus, ok
from dirserver.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline


class Recorder(Middleware):
    """Appends its tag to a shared list on the way in and on the way out."""

    def __init__(self, tag: str, calls: list):
        self.tag = tag
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self.tag}:before")
        response = next(request)
        self.calls.append(f"{self.tag}:after")
        return response


class ShortCircuit(Middleware):

    def __call__(self, request, next):
        return HTTPResponse(status=HTTPStatus.FORBIDDEN)


@pytest.fixture
def request_() -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path="/a%20b/",
        headers={"user-agent": "pytest"},
        client_address=("10.0.0.5", 40000),
    )


class TestMiddlewarePipeline:

    def test_first_added_is_outermost(self, request_):
        calls = []
        pipeline = MiddlewarePipeline().add(Recorder("one", calls)).add(Recorder("two", calls))

        def handler(request):
            calls.append("handler")
            return ok(b"")

        pipeline.wrap(handler)(request_)

        assert calls == ["one:before", "two:before", "handler", "two:after", "one:after"]

    def test_short_circuit(self, request_):
        called = []
        handler = MiddlewarePipeline().use(ShortCircuit()).wrap(lambda r: called.append(r))

        response = handler(request_)

        assert response.status == HTTPStatus.FORBIDDEN
        assert called == []

    def test_empty_pipeline_is_handler(self, request_):
        def handler(request):
            return ok(b"x")

        assert MiddlewarePipeline().wrap(handler) is handler

    def test_len_and_iter(self):
        first, second = ShortCircuit(), ShortCircuit()
        pipeline = MiddlewarePipeline().use(first, second)

        assert len(pipeline) == 2
        assert list(pipeline) == [first, second]


class TestLoggingMiddleware:

    def test_text_line(self, request_, caplog):
        caplog.set_level(logging.INFO, logger="dirserver.access")

        LoggingMiddleware()(request_, lambda r: ok(b"hello"))

        record = caplog.records[-1]
        assert record.name == "dirserver.access"
        assert record.getMessage().startswith("10.0.0.5 - - [")
        assert '"GET /a%20b/" 200 5 ' in record.getMessage()

    def test_json_line(self, request_, caplog):
        caplog.set_level(logging.INFO, logger="dirserver.access")

        LoggingMiddleware(log_format="json")(request_, lambda r: ok(b"hello"))

        data = json.loads(caplog.records[-1].getMessage())
        assert data["method"] == "GET"
        assert data["path"] == "/a%20b/"
        assert data["status_code"] == 200
        assert data["content_length"] == 5
        assert data["user_agent"] == "pytest"

    def test_request_id_header(self, request_):
        response = LoggingMiddleware()(request_, lambda r: ok(b""))

        assert len(response.headers["X-Request-ID"]) == 8

    def test_request_id_can_be_disabled(self, request_):
        response = LoggingMiddleware(include_request_id=False)(request_, lambda r: ok(b""))

        assert "X-Request-ID" not in response.headers

    def test_skip_paths(self, request_, caplog):
        caplog.set_level(logging.INFO, logger="dirserver.access")

        LoggingMiddleware(skip_paths=["/a%20b/"])(request_, lambda r: ok(b""))

        assert not [r for r in caplog.records if r.name == "dirserver.access"]

    def test_handler_exception_is_logged_and_reraised(self, request_, caplog):
        caplog.set_level(logging.INFO, logger="dirserver.access")

        def explode(request):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            LoggingMiddleware()(request_, explode)

        assert "RuntimeError: boom" in caplog.text
