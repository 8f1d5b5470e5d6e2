"""
Unit tests for middleware composition
"""
from unittest.mock import MagicMock

import pytest

from cascade.exceptions import MiddlewareError
from cascade.middleware import compose


def tracer(log, name):
    async def unit(ctx, next):
        log.append(f"{name}-in")
        await next()
        log.append(f"{name}-out")
    unit.__name__ = name
    return unit


class TestCompose:
    """Test compose()"""

    @pytest.mark.asyncio
    async def test_cascading_order(self):
        log = []
        handler = compose([tracer(log, "a"), tracer(log, "b"), tracer(log, "c")])

        await handler({})

        assert log == ["a-in", "b-in", "c-in", "c-out", "b-out", "a-out"]

    @pytest.mark.asyncio
    async def test_empty_stack_completes_without_touching_context(self):
        ctx = MagicMock()
        handler = compose([])

        assert await handler(ctx) is None
        assert ctx.mock_calls == []

    @pytest.mark.asyncio
    async def test_shared_context(self):
        async def first(ctx, next):
            ctx["seen"] = ["first"]
            await next()

        async def second(ctx, next):
            ctx["seen"].append("second")

        ctx = {}
        await compose([first, second])(ctx)

        assert ctx["seen"] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failure_short_circuits(self):
        log = []
        error = RuntimeError("stop")

        async def failing(ctx, next):
            log.append("failing")
            raise error

        handler = compose([tracer(log, "a"), failing, tracer(log, "c")])

        with pytest.raises(RuntimeError) as excinfo:
            await handler({})

        assert excinfo.value is error
        assert log == ["a-in", "failing"]

    @pytest.mark.asyncio
    async def test_upstream_unit_can_catch_downstream_error(self):
        async def guard(ctx, next):
            try:
                await next()
            except ValueError as exc:
                ctx["caught"] = str(exc)

        async def failing(ctx, next):
            raise ValueError("bad input")

        ctx = {}
        await compose([guard, failing])(ctx)

        assert ctx["caught"] == "bad input"

    @pytest.mark.asyncio
    async def test_next_called_twice_fails_fast(self):
        entered = []

        async def twice(ctx, next):
            await next()
            await next()

        async def downstream(ctx, next):
            entered.append(True)

        with pytest.raises(MiddlewareError, match="multiple times"):
            await compose([twice, downstream])({})

        assert entered == [True]

    @pytest.mark.asyncio
    async def test_unit_that_skips_next_stops_the_chain(self):
        log = []

        async def stop(ctx, next):
            log.append("stop")

        await compose([stop, tracer(log, "never")])({})

        assert log == ["stop"]

    @pytest.mark.asyncio
    async def test_trailing_next_runs_after_last_unit(self):
        log = []

        def final():
            log.append("final")

        await compose([tracer(log, "a")])({}, final)

        assert log == ["a-in", "final", "a-out"]

    @pytest.mark.asyncio
    async def test_nested_composition(self):
        log = []
        inner = compose([tracer(log, "b"), tracer(log, "c")])
        outer = compose([tracer(log, "a"), inner, tracer(log, "d")])

        await outer({})

        assert log == ["a-in", "b-in", "c-in", "d-in", "d-out", "c-out", "b-out", "a-out"]

    @pytest.mark.asyncio
    async def test_sync_units_and_return_values(self):
        def sync_unit(ctx, next):
            ctx["sync"] = True
            return next()

        async def last(ctx, next):
            return "done"

        ctx = {}
        assert await compose([sync_unit, last])(ctx) == "done"
        assert ctx["sync"] is True

    @pytest.mark.asyncio
    async def test_stack_is_snapshotted(self):
        log = []
        stack = [tracer(log, "a")]
        handler = compose(stack)
        stack.append(tracer(log, "late"))

        await handler({})

        assert log == ["a-in", "a-out"]

    @pytest.mark.asyncio
    async def test_handler_is_reusable(self):
        log = []
        handler = compose([tracer(log, "a")])

        await handler({})
        await handler({})

        assert log == ["a-in", "a-out", "a-in", "a-out"]

    def test_rejects_non_list(self):
        with pytest.raises(TypeError, match="must be a list"):
            compose("not a list")

    def test_rejects_non_callable_member(self):
        with pytest.raises(TypeError, match="composed of functions"):
            compose([tracer([], "a"), 42])
