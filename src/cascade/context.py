"""
Cascade request context.

One ``Context`` is created per request and handed to every middleware unit.
It carries the transport pair (``req``/``res``), the request and response
views, a free-form ``state`` dict, and shortcuts that forward to the views,
so middleware can write ``ctx.status = 201`` or read ``ctx.path``.
"""

import logging
from typing import Any, Dict, NoReturn, Optional

from cascade.delegation import Delegating, Delegator
from cascade.exceptions import create_error

logger = logging.getLogger(__name__)


class Context(Delegating):
    """
    Per-request context.

    ``create_context`` wires ``app``, ``req``, ``res``, ``request``,
    ``response``, ``state``, ``cookies``, ``accept`` and ``original_url``.
    Set ``ctx.respond = False`` to write the response yourself.
    """

    def throw(self, status: int = 500, message: Optional[str] = None, **props: Any) -> NoReturn:
        """Raise an ``HTTPException``.

        Example:
            ctx.throw(403, "no entry", user=user.id)
        """
        raise create_error(status, message, **props)

    def assert_(self, value: Any, status: int = 500, message: Optional[str] = None, **props: Any) -> None:
        """``throw`` unless ``value`` is truthy."""
        if not value:
            self.throw(status, message, **props)

    def onerror(self, err: Optional[BaseException]) -> None:
        """
        Report a request failure to the application's error sink.

        ``None`` signals a normal finish and is ignored. Only the first error
        for a context is reported; the chain and the connection observer can
        both fire for one request.
        """
        if err is None:
            return
        if self.__dict__.get("_finalized"):
            logger.debug("duplicate error for %s ignored: %r", self.original_url, err)
            return
        self._finalized = True

        if not isinstance(err, BaseException):
            err = Exception(f"non-error thrown: {err!r}")

        if self.res.headers_sent or not self.res.writable:
            err.headers_sent = True

        self.app.report_error(err, self)

    @property
    def finalized(self) -> bool:
        return bool(self.__dict__.get("_finalized"))

    def to_json(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_json(),
            "response": self.response.to_json(),
            "app": self.app.to_json(),
            "original_url": self.original_url,
            "req": "<original transport request>",
            "res": "<original transport response>",
            "socket": "<original transport socket>",
        }

    inspect = to_json

    def __repr__(self) -> str:
        return f"<Context {self.request.method} {self.original_url}>"


(Delegator(Context, "response")
    .method("attachment")
    .method("redirect")
    .method("remove")
    .method("vary")
    .method("has")
    .method("set")
    .method("append")
    .access("status")
    .access("message")
    .access("body")
    .access("length")
    .access("type")
    .access("last_modified")
    .access("etag")
    .getter("headers_sent")
    .getter("writable"))

(Delegator(Context, "request")
    .method("accepts_languages")
    .method("accepts_encodings")
    .method("accepts_charsets")
    .method("accepts")
    .method("get")
    .method("is_")
    .access("querystring")
    .getter("idempotent")
    .getter("search")
    .access("method")
    .access("query")
    .access("path")
    .access("url")
    .getter("origin")
    .getter("href")
    .getter("subdomains")
    .getter("protocol")
    .getter("host")
    .getter("hostname")
    .getter("header")
    .getter("headers")
    .getter("secure")
    .getter("ips")
    .getter("ip"))
