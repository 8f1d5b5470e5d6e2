"""
Cascade Application - ASGI request-dispatch core

This module provides the main Application class. An application owns an
ordered middleware list and three long-lived default objects (``context``,
``request``, ``response``). For every HTTP request it:

- builds a fresh Context over the transport pair and the defaults
- runs the composed middleware chain against it
- hands the settled context to the response writer
- routes any failure to the error sink, once per request

Example:
    app = Application()

    async def hello(ctx, next):
        ctx.body = {"hello": "world"}

    app.use(hello)
    app.listen(port=8000)
"""

import dataclasses
import inspect
import logging
import traceback
import warnings
from typing import Any, Awaitable, Callable, Dict, List, Optional

from cascade.context import Context
from cascade.delegation import Defaults
from cascade.http.accepts import Accepts
from cascade.http.cookies import Cookies
from cascade.http.request import Request
from cascade.http.response import Response
from cascade.http.transport import TransportRequest, TransportResponse, create_transport
from cascade.middleware import compose, convert, is_generator_middleware, Middleware, ComposedHandler
from cascade.server.config import AppConfig
from cascade.server.writer import respond

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[BaseException, Optional[Context]], Any]
ASGIReceive = Callable[[], Awaitable[Dict[str, Any]]]
ASGISend = Callable[[Dict[str, Any]], Awaitable[None]]


class Application:
    """
    Main application class for the Cascade framework.

    Attributes:
        config (AppConfig): Application and server configuration
        middleware (List[Middleware]): Ordered middleware units
        context, request, response (Defaults): Application-wide defaults that
            every per-request object falls back to
        proxy (bool): Trust proxy headers for ip, host and protocol
        keys (List[str]): Cookie signing keys
        silent (bool): Suppress the default error output

    ``error_handler`` replaces the default error sink (``onerror``). It is
    called as ``error_handler(err, ctx)``.
    """

    def __init__(self,
                 config: Optional[AppConfig] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 **overrides: Any):
        config = config or AppConfig()
        if overrides:
            config = dataclasses.replace(config, **overrides)
        self.config = config

        self.env = config.env
        self.proxy = config.proxy
        self.proxy_ip_header = config.proxy_ip_header
        self.max_ips_count = config.max_ips_count
        self.subdomain_offset = config.subdomain_offset
        self.keys = list(config.keys)
        self.silent = config.silent

        # Mutated only at startup, before requests are served
        self.middleware: List[Middleware] = []

        self.context = Defaults()
        self.request = Defaults()
        self.response = Defaults()

        self._error_handlers: List[ErrorHandler] = [error_handler] if error_handler else []
        self._startup_events: List[Callable] = []
        self._shutdown_events: List[Callable] = []
        self._handler: Optional[Callable] = None
        self._server = None

    # Registration

    def use(self, fn: Middleware) -> 'Application':
        """Append a middleware unit. Generator-style units are converted."""
        if not callable(fn):
            raise TypeError("middleware must be a function!")
        if is_generator_middleware(fn):
            warnings.warn(
                "Support for generator middleware will be removed. "
                "Write middleware as `async def fn(ctx, next)` instead.",
                DeprecationWarning,
                stacklevel=2,
            )
            fn = convert(fn)
        logger.debug("use %s", getattr(fn, "_name", None) or getattr(fn, "__name__", "-"))
        self.middleware.append(fn)
        self._handler = None
        return self

    def on(self, event: str, handler: Optional[ErrorHandler] = None):
        """Register an ``"error"`` listener; usable as a decorator."""
        if event != "error":
            raise ValueError(f"unsupported event: {event}")

        def register(func: ErrorHandler) -> ErrorHandler:
            self._error_handlers.append(func)
            return func

        if handler is None:
            return register
        return register(handler)

    def listeners(self, event: str) -> List[ErrorHandler]:
        return list(self._error_handlers) if event == "error" else []

    def on_startup(self, func: Callable) -> Callable:
        """Register a startup task"""
        self._startup_events.append(func)
        return func

    def on_shutdown(self, func: Callable) -> Callable:
        """Register a shutdown task"""
        self._shutdown_events.append(func)
        return func

    # Request handling

    def callback(self) -> Callable[[Dict[str, Any], ASGIReceive, ASGISend], Awaitable[None]]:
        """Return an ASGI callable serving the current middleware list."""
        fn = compose(self.middleware)

        async def handle(scope: Dict[str, Any], receive: ASGIReceive, send: ASGISend) -> None:
            if scope["type"] == "lifespan":
                await self.handle_lifespan(scope, receive, send)
                return
            if scope["type"] != "http":
                logger.debug("ignoring %s scope", scope["type"])
                return
            req, res = create_transport(scope, receive, send)
            ctx = self.create_context(req, res)
            await self.handle_request(ctx, fn)

        return handle

    async def __call__(self, scope: Dict[str, Any], receive: ASGIReceive, send: ASGISend) -> None:
        if self._handler is None:
            self._handler = self.callback()
        await self._handler(scope, receive, send)

    async def handle_request(self, ctx: Context, fn: ComposedHandler) -> None:
        """Drive one request through ``fn``. Never raises."""
        res = ctx.res
        res.status_code = 404
        res.on_finished(ctx.onerror)
        try:
            await fn(ctx)
            await respond(ctx)
        except Exception as err:
            ctx.onerror(err)

    def create_context(self, req: TransportRequest, res: TransportResponse) -> Context:
        """Build the context, request view and response view for one exchange."""
        context = Context(self.context)
        request = context.request = Request(self.request)
        response = context.response = Response(self.response)
        context.app = request.app = response.app = self
        context.req = request.req = response.req = req
        context.res = request.res = response.res = res
        request.ctx = response.ctx = context
        request.response = response
        response.request = request
        context.original_url = request.original_url = req.url
        context.cookies = Cookies(req, res, keys=self.keys, secure=request.secure)
        ips = request.ips
        request.ip = ips[0] if ips else (req.remote_address or "")
        context.accept = request.accept = Accepts(req)
        context.state = {}
        return context

    # Errors

    def report_error(self, err: BaseException, ctx: Optional[Context] = None) -> None:
        """Send ``err`` to the registered error handlers, or to ``onerror``."""
        if not self._error_handlers:
            self.onerror(err)
            return
        for handler in self._error_handlers:
            try:
                handler(err, ctx)
            except Exception:
                logger.exception("error handler %r failed", handler)

    def onerror(self, err: BaseException) -> None:
        """Default error sink: log unexpected errors, indented."""
        assert isinstance(err, BaseException), f"non-error thrown: {err!r}"

        if getattr(err, "status", None) == 404 or getattr(err, "expose", False):
            return
        if self.silent:
            return

        if err.__traceback__ is not None:
            msg = "".join(traceback.format_exception(type(err), err, err.__traceback__))
        else:
            msg = str(err) or repr(err)
        indented = "\n".join("  " + line for line in msg.rstrip("\n").splitlines())
        logger.error("\n%s\n", indented)

    # Lifespan

    async def startup(self) -> None:
        for event in self._startup_events:
            if inspect.iscoroutinefunction(event):
                await event(self)
            else:
                event(self)

    async def shutdown(self) -> None:
        for event in self._shutdown_events:
            if inspect.iscoroutinefunction(event):
                await event(self)
            else:
                event(self)

    async def handle_lifespan(self, scope: Dict[str, Any], receive: ASGIReceive, send: ASGISend) -> None:
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    logger.exception("startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    logger.exception("shutdown failed")
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    # Serving

    def create_server(self):
        """Create a server instance for this application"""
        from cascade.server.server import Server

        if self._server is None:
            self._server = Server(self, self.config)
        return self._server

    def listen(self, host: Optional[str] = None, port: Optional[int] = None, **options: Any):
        """Serve the application with hypercorn (blocking)."""
        logger.debug("listen")
        server = self.create_server()
        self._apply_server_options(host, port, options)
        server.run()
        return server

    async def serve(self, host: Optional[str] = None, port: Optional[int] = None, **options: Any) -> None:
        """Start serving requests from a running event loop"""
        server = self.create_server()
        self._apply_server_options(host, port, options)
        await server.start()

    async def stop(self) -> None:
        """Stop the server"""
        if self._server:
            await self._server.shutdown()

    def _apply_server_options(self, host: Optional[str], port: Optional[int], options: Dict[str, Any]) -> None:
        if host is not None:
            options["host"] = host
        if port is not None:
            options["port"] = port
        self.config.update(**options)

    # Introspection

    def to_json(self) -> Dict[str, Any]:
        return {
            "subdomain_offset": self.subdomain_offset,
            "proxy": self.proxy,
            "env": self.env,
        }

    inspect = to_json

    def __repr__(self) -> str:
        return f"<Application env={self.env!r} middleware={len(self.middleware)}>"


# Convenience alias
Cascade = Application
