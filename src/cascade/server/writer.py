"""
Response writer.

``respond`` runs once per request after the middleware chain settles. It
inspects the final context state and performs exactly one terminal action
on the transport response.
"""

import json
import logging
from typing import Any

from cascade import statuses
from cascade.http.response import is_json, is_stream

logger = logging.getLogger(__name__)


def encode_json(body: Any) -> str:
    return json.dumps(body, separators=(",", ":"))


async def respond(ctx) -> None:
    """Serialize ``ctx`` into the transport response and end it."""
    # middleware took over the response
    if getattr(ctx, "respond", True) is False:
        return

    if not ctx.writable:
        return

    res = ctx.res
    body = ctx.body
    code = ctx.status

    if code in statuses.EMPTY:
        ctx.body = None
        await res.end()
        return

    if ctx.method == "HEAD":
        if not res.headers_sent and is_json(body):
            ctx.length = len(encode_json(body).encode("utf-8"))
        await res.end()
        return

    if body is None:
        text = ctx.message or str(code)
        if not res.headers_sent:
            ctx.type = "text"
            ctx.length = len(text.encode("utf-8"))
        await res.end(text)
        return

    if isinstance(body, (bytes, bytearray, memoryview, str)):
        await res.end(body)
        return

    if is_stream(body):
        logger.debug("piping stream body for %s", ctx.original_url)
        await res.pipe(body)
        return

    text = encode_json(body)
    if not res.headers_sent:
        ctx.length = len(text.encode("utf-8"))
    await res.end(text)
