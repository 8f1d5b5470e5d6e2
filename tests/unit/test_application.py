"""
Unit tests for Cascade Application
"""
import logging
from unittest.mock import MagicMock

import pytest

from cascade import Application, AppConfig
from cascade.exceptions import ClientDisconnect, HTTPException, NotFound
from cascade.middleware import compose
from tests.fixtures.http import make_scope


def raised(exc):
    """Return ``exc`` with a traceback attached."""
    try:
        raise exc
    except BaseException as caught:
        return caught


class TestApplication:
    """Test Application class"""

    def test_application_init(self, config):
        app = Application(config)
        assert app.config == config
        assert app.middleware == []
        assert app.env == "test"
        assert app.keys == ["test-secret-key"]
        assert app.proxy is False
        assert app.subdomain_offset == 2

    def test_application_init_default_config(self):
        app = Application()
        assert isinstance(app.config, AppConfig)

    def test_keyword_overrides(self, config):
        app = Application(config, proxy=True, silent=True)
        assert app.proxy is True
        assert app.silent is True
        assert config.proxy is False

    def test_to_json(self, app):
        assert app.to_json() == {"subdomain_offset": 2, "proxy": False, "env": "test"}
        assert app.inspect() == app.to_json()

    def test_use_appends_and_chains(self, app):
        async def first(ctx, next):
            await next()

        async def second(ctx, next):
            await next()

        assert app.use(first).use(second) is app
        assert app.middleware == [first, second]

    @pytest.mark.parametrize("value", [None, 42, "middleware", {"a": 1}])
    def test_use_rejects_non_callable(self, app, value):
        async def existing(ctx, next):
            await next()

        app.use(existing)
        with pytest.raises(TypeError, match="middleware must be a function"):
            app.use(value)
        assert app.middleware == [existing]

    def test_on_error_registration(self, app):
        @app.on("error")
        def handler(err, ctx):
            pass

        assert app.listeners("error") == [handler]
        with pytest.raises(ValueError):
            app.on("request", handler)


class TestDefaultErrorHandler:
    """Test Application.onerror()"""

    def test_logs_indented_traceback(self, app, error_log):
        app.onerror(raised(ValueError("boom")))

        assert len(error_log.records) == 1
        message = error_log.records[0].getMessage()
        assert message.startswith("\n")
        assert message.endswith("\n")
        lines = message.strip("\n").splitlines()
        assert lines[0] == "  Traceback (most recent call last):"
        assert lines[-1] == "  ValueError: boom"
        assert all(line.startswith("  ") for line in lines)

    def test_logs_message_without_traceback(self, app, error_log):
        app.onerror(RuntimeError("no stack"))

        assert error_log.records[0].getMessage() == "\n  no stack\n"

    def test_server_http_errors_are_logged(self, app, error_log):
        app.onerror(raised(HTTPException(500)))
        assert len(error_log.records) == 1

    @pytest.mark.parametrize("err", [
        NotFound(),
        HTTPException(404, expose=False),
        HTTPException(400),
        HTTPException(500, expose=True),
    ])
    def test_suppressed_errors(self, app, error_log, err):
        app.onerror(err)
        assert error_log.records == []

    def test_status_attribute_on_plain_error(self, app, error_log):
        err = RuntimeError("gone")
        err.status = 404
        app.onerror(err)
        assert error_log.records == []

    def test_silent_application(self, config, error_log):
        app = Application(config, silent=True)
        app.onerror(raised(ValueError("quiet")))
        assert error_log.records == []

    def test_rejects_non_error(self, app):
        with pytest.raises(AssertionError, match="non-error thrown"):
            app.onerror("not an error")

    def test_custom_handler_replaces_default(self, make_context, error_log):
        handler = MagicMock()
        app = Application(error_handler=handler)
        ctx, _ = make_context(application=app)
        err = ValueError("custom")

        app.report_error(err, ctx)

        handler.assert_called_once_with(err, ctx)
        assert error_log.records == []

    def test_failing_custom_handler_is_logged(self, error_log):
        app = Application(error_handler=MagicMock(side_effect=RuntimeError("sink down")))

        app.report_error(ValueError("original"))

        assert any("failed" in r.getMessage() for r in error_log.records)


class TestHandleRequest:
    """Test Application.handle_request()"""

    @pytest.mark.asyncio
    async def test_default_not_found(self, app, make_context):
        ctx, asgi = make_context()

        await app.handle_request(ctx, compose([]))

        assert asgi.status == 404
        assert asgi.body == b"Not Found"

    @pytest.mark.asyncio
    async def test_success_writes_response_once(self, app, make_context):
        async def handler(ctx, next):
            ctx.body = {"ok": True}

        ctx, asgi = make_context()
        await app.handle_request(ctx, compose([handler]))

        assert asgi.status == 200
        assert asgi.body == b'{"ok":true}'
        assert len(asgi.body_messages) == 1

    @pytest.mark.asyncio
    async def test_chain_failure_goes_to_error_handler(self, make_context):
        handler = MagicMock()
        app = Application(error_handler=handler)
        error = RuntimeError("broken")

        async def failing(ctx, next):
            ctx.body = "never written"
            raise error

        ctx, asgi = make_context(application=app)
        await app.handle_request(ctx, compose([failing]))

        handler.assert_called_once_with(error, ctx)
        assert asgi.messages == []

    @pytest.mark.asyncio
    async def test_writer_failure_goes_to_error_handler(self, make_context):
        handler = MagicMock()
        app = Application(error_handler=handler)

        async def unserializable(ctx, next):
            ctx.body = {"bad": object()}

        ctx, _ = make_context(application=app)
        await app.handle_request(ctx, compose([unserializable]))

        handler.assert_called_once()
        assert isinstance(handler.call_args[0][0], TypeError)

    @pytest.mark.asyncio
    async def test_abort_reports_client_disconnect(self, make_context):
        handler = MagicMock()
        app = Application(error_handler=handler)

        async def abandon(ctx, next):
            ctx.res.abort()
            ctx.body = "too late"

        ctx, asgi = make_context(application=app)
        await app.handle_request(ctx, compose([abandon]))

        handler.assert_called_once()
        assert isinstance(handler.call_args[0][0], ClientDisconnect)
        assert asgi.messages == []

    @pytest.mark.asyncio
    async def test_disconnect_and_chain_failure_report_once(self, make_context):
        handler = MagicMock()
        app = Application(error_handler=handler)

        async def read_body(ctx, next):
            await ctx.req.read()

        ctx, _ = make_context(application=app, disconnect=True)
        await app.handle_request(ctx, compose([read_body]))

        handler.assert_called_once()
        assert isinstance(handler.call_args[0][0], ClientDisconnect)

    @pytest.mark.asyncio
    async def test_uncaught_errors_are_logged_not_raised(self, app, make_context, error_log):
        async def failing(ctx, next):
            raise KeyError("missing")

        ctx, _ = make_context()
        await app.handle_request(ctx, compose([failing]))

        assert len(error_log.records) == 1
        assert "KeyError" in error_log.records[0].getMessage()


class TestASGIInterface:
    """Test Application.__call__()"""

    @pytest.mark.asyncio
    async def test_http_request(self, app, recorder):
        async def hello(ctx, next):
            ctx.body = "hello"

        app.use(hello)
        asgi = recorder()

        await app(make_scope(), asgi.receive, asgi.send)

        assert asgi.status == 200
        assert asgi.body == b"hello"

    @pytest.mark.asyncio
    async def test_use_after_first_request_is_picked_up(self, app, recorder):
        first = recorder()
        await app(make_scope(), first.receive, first.send)

        async def late(ctx, next):
            ctx.status = 202

        app.use(late)
        second = recorder()
        await app(make_scope(), second.receive, second.send)

        assert first.status == 404
        assert second.status == 202

    @pytest.mark.asyncio
    async def test_lifespan(self, app):
        events = []

        @app.on_startup
        async def start(application):
            events.append(("startup", application))

        @app.on_shutdown
        def stop(application):
            events.append(("shutdown", application))

        incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return incoming.pop(0)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)

        assert events == [("startup", app), ("shutdown", app)]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]

    @pytest.mark.asyncio
    async def test_failed_startup_is_reported(self, app, caplog):
        @app.on_startup
        def start(application):
            raise RuntimeError("db unavailable")

        incoming = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return incoming.pop(0)

        async def send(message):
            sent.append(message)

        with caplog.at_level(logging.ERROR):
            await app({"type": "lifespan"}, receive, send)

        assert sent[0] == {"type": "lifespan.startup.failed", "message": "db unavailable"}

    @pytest.mark.asyncio
    async def test_websocket_scope_is_ignored(self, app):
        send = MagicMock()

        async def receive():
            return {"type": "websocket.connect"}

        await app({"type": "websocket"}, receive, send)

        send.assert_not_called()
