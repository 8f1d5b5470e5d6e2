#!/usr/bin/env python3
"""
Example Cascade Application

Shows the cascading middleware model:
- response timing measured around the rest of the stack
- an error boundary that turns exposed HTTP errors into JSON
- signed cookies and per-request state
- a streaming body
"""
import time
from typing import Any, Dict

from cascade import Application

app: Application = Application(keys=["change-me"])


async def response_time(ctx, next):
    started = time.perf_counter()
    await next()
    ctx.set("X-Response-Time", f"{(time.perf_counter() - started) * 1000:.2f}ms")


async def error_boundary(ctx, next):
    try:
        await next()
    except Exception as err:
        ctx.status = getattr(err, "status", 500)
        ctx.body = {"error": err.message if getattr(err, "expose", False) else "Internal Server Error"}
        ctx.app.report_error(err, ctx)


async def visits(ctx, next):
    count = int(ctx.cookies.get("visits") or 0) + 1
    ctx.cookies.set("visits", str(count))
    ctx.state["visits"] = count
    await next()


async def routes(ctx, next):
    if ctx.path == "/":
        ctx.body = {"message": "Welcome to Cascade!", "visits": ctx.state["visits"]}
    elif ctx.path == "/stream":
        ctx.type = "text"
        ctx.body = countdown(5)
    elif ctx.path == "/private":
        ctx.throw(403, "members only")
    else:
        await next()


async def countdown(start: int):
    for number in range(start, 0, -1):
        yield f"{number}\n"


@app.on("error")
def log_error(err: BaseException, ctx: Any = None) -> None:
    if getattr(err, "expose", False):
        return
    app.onerror(err)


@app.on_startup
async def announce(application: Application) -> None:
    info: Dict[str, Any] = application.to_json()
    print(f"Cascade example starting: {info}")


app.use(response_time).use(error_boundary).use(visits).use(routes)


if __name__ == "__main__":
    app.listen(port=8000)
