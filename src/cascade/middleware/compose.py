"""
Middleware composition.

``compose`` turns an ordered list of ``async def unit(ctx, next)`` callables
into one handler with cascading control flow: units run in list order on
the way in, and the code after each ``await next()`` resumes in reverse
order on the way out.
"""

import inspect
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Sequence

from cascade.exceptions import MiddlewareError

logger = logging.getLogger(__name__)

Next = Callable[[], Awaitable[Any]]
Middleware = Callable[[Any, Next], Optional[Awaitable[Any]]]
ComposedHandler = Callable[..., Awaitable[Any]]


def compose(middleware: Sequence[Middleware]) -> ComposedHandler:
    """
    Compose ``middleware`` into a single ``handler(ctx, next=None)``.

    The list is snapshotted, so later changes to it do not affect the
    returned handler. The handler is itself a middleware unit: a trailing
    zero-argument ``next`` passed to it runs after the last unit, which
    lets composed handlers nest.

    Raises:
        TypeError: ``middleware`` is not a list or holds a non-callable.
    """
    if not isinstance(middleware, (list, tuple)):
        raise TypeError("Middleware stack must be a list!")
    for fn in middleware:
        if not callable(fn):
            raise TypeError("Middleware must be composed of functions!")

    stack = tuple(middleware)

    async def composed(ctx: Any, next: Optional[Next] = None) -> Any:
        index = -1

        def dispatch(i: int) -> Awaitable[Any]:
            nonlocal index
            # each slot may be entered once per run
            if i <= index:
                raise MiddlewareError("next() called multiple times")
            index = i
            return invoke(i)

        async def invoke(i: int) -> Any:
            if i < len(stack):
                result = stack[i](ctx, partial(dispatch, i + 1))
            elif next is not None:
                result = next()
            else:
                return None
            if inspect.isawaitable(result):
                result = await result
            return result

        return await dispatch(0)

    composed.middleware = stack
    logger.debug("composed %d middleware", len(stack))
    return composed
