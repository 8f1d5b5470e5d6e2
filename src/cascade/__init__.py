"""
Cascade - middleware-first ASGI web framework core

Composes ``async def (ctx, next)`` middleware into one cascading handler,
gives every request a shared context, and turns the final context state
into an HTTP response.

Example:
    >>> from cascade import Application
    >>>
    >>> app = Application()
    >>>
    >>> async def hello(ctx, next):
    ...     ctx.body = 'Hello, World!'
    >>>
    >>> app.use(hello)
    >>>
    >>> if __name__ == '__main__':
    ...     app.listen(port=8000)
"""

__version__ = "0.1.0"
__author__ = "Cascade Team"

from cascade.server.application import Application, Cascade
from cascade.server.config import AppConfig
from cascade.server.writer import respond
from cascade.context import Context
from cascade.http import Request, Response, Cookies, Accepts
from cascade.middleware import compose, convert
from cascade.exceptions import (
    HTTPException, BadRequest, Forbidden, NotFound,
    MiddlewareError, ClientDisconnect, create_error,
)

__all__ = [
    # Core
    "Application", "Cascade", "AppConfig", "Context", "respond",
    "Request", "Response", "Cookies", "Accepts",

    # Middleware
    "compose", "convert",

    # Errors
    "HTTPException", "BadRequest", "Forbidden", "NotFound",
    "MiddlewareError", "ClientDisconnect", "create_error",

    "__version__", "__author__",
]
