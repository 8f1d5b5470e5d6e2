"""
Adapter for generator-style middleware.

Older middleware was written as a generator taking only the context, with
a single ``yield`` marking where the downstream chain runs::

    async def timer(ctx):
        start = time.monotonic()
        yield
        ctx.set("x-response-time", f"{time.monotonic() - start:.3f}s")

``convert`` wraps such a function into a regular ``(ctx, next)`` unit.
Errors raised downstream are thrown into the generator at the ``yield``.
"""

import inspect
from typing import Any, Callable

from cascade.exceptions import MiddlewareError
from cascade.middleware.compose import Middleware, Next


def is_generator_middleware(fn: Any) -> bool:
    return inspect.isgeneratorfunction(fn) or inspect.isasyncgenfunction(fn)


def _too_many_yields(fn: Callable) -> MiddlewareError:
    name = getattr(fn, "__name__", repr(fn))
    return MiddlewareError(f"generator middleware {name} must yield at most once")


def convert(fn: Callable) -> Middleware:
    """Wrap a generator-style middleware as a ``(ctx, next)`` unit."""
    if inspect.isasyncgenfunction(fn):
        async def converted(ctx: Any, next: Next) -> None:
            agen = fn(ctx)
            try:
                await agen.__anext__()
            except StopAsyncIteration:
                return

            try:
                await next()
            except Exception as exc:
                try:
                    await agen.athrow(exc)
                except StopAsyncIteration:
                    return
                await agen.aclose()
                raise _too_many_yields(fn)

            try:
                await agen.__anext__()
            except StopAsyncIteration:
                return
            await agen.aclose()
            raise _too_many_yields(fn)

    elif inspect.isgeneratorfunction(fn):
        async def converted(ctx: Any, next: Next) -> None:
            gen = fn(ctx)
            try:
                next_value = gen.send(None)
            except StopIteration:
                return

            # a sync generator may yield an awaitable to run before delegating
            if inspect.isawaitable(next_value):
                await next_value

            try:
                await next()
            except Exception as exc:
                try:
                    gen.throw(exc)
                except StopIteration:
                    return
                gen.close()
                raise _too_many_yields(fn)

            try:
                gen.send(None)
            except StopIteration:
                return
            gen.close()
            raise _too_many_yields(fn)

    else:
        raise TypeError("convert() expects a generator function")

    converted.__name__ = getattr(fn, "__name__", "converted")
    converted._name = converted.__name__
    converted.original = fn
    return converted
