"""
Cascade response view.

A per-request object layered over the application's response defaults and
the transport response. Setting ``body`` infers a status and content type,
so middleware can write ``ctx.body = {...}`` and let the response writer
finish the job.
"""

import html
import io
import re
from datetime import datetime
from email.utils import format_datetime, parsedate_to_datetime
from os.path import basename, splitext
from typing import Any, Dict, Optional, Union
from urllib.parse import quote

from cascade import statuses
from cascade.delegation import Delegating
from cascade.http.accepts import normalize_type

_HTML_START = re.compile(r"^\s*<")
_TEXTUAL = ("text/", "application/json", "application/javascript", "application/xml")

_UNSET = object()


def is_stream(value: Any) -> bool:
    """True for byte sources the writer should pipe rather than buffer."""
    if value is None or isinstance(value, (str, bytes, bytearray, memoryview, dict, list, tuple)):
        return False
    if isinstance(value, io.IOBase) or hasattr(value, "__aiter__"):
        return True
    return hasattr(value, "__next__") or callable(getattr(value, "read", None))


def is_json(value: Any) -> bool:
    """True for bodies that serialize as JSON."""
    if value is None or isinstance(value, (str, bytes, bytearray, memoryview)):
        return False
    # 0, False and NaN count as no body
    if isinstance(value, (int, float)) and (not value or value != value):
        return False
    return not is_stream(value)


def content_type(value: str) -> Optional[str]:
    """Expand a shorthand type and add ``charset=utf-8`` for textual types."""
    if value == "bin":
        return "application/octet-stream"
    mime = normalize_type(value) if ";" not in value else value
    if mime is None:
        return None
    if ";" not in mime and mime.startswith(_TEXTUAL):
        mime += "; charset=utf-8"
    return mime


class Response(Delegating):
    """Response view. Wired to ``app``, ``req``, ``res``, ``ctx`` and ``request`` on creation."""

    # Headers

    @property
    def header(self) -> Dict[str, Union[str, list]]:
        return self.res.get_headers()

    headers = header

    @property
    def headers_sent(self) -> bool:
        return self.res.headers_sent

    def get(self, field: str) -> Union[str, list]:
        value = self.res.get_header(field)
        return "" if value is None else value

    def has(self, field: str) -> bool:
        return self.res.has_header(field)

    def set(self, field: Union[str, Dict[str, Any]], value: Any = None) -> None:
        if self.headers_sent:
            return
        if isinstance(field, dict):
            for key, item in field.items():
                self.set(key, item)
            return
        self.res.set_header(field, value if isinstance(value, (list, tuple)) else str(value))

    def append(self, field: str, value: Any) -> None:
        previous = self.res.get_header(field)
        if previous is not None:
            previous = [previous] if isinstance(previous, str) else list(previous)
            value = previous + (list(value) if isinstance(value, (list, tuple)) else [value])
        self.set(field, value)

    def remove(self, field: str) -> None:
        if self.headers_sent:
            return
        self.res.remove_header(field)

    def vary(self, field: str) -> None:
        if self.headers_sent:
            return
        current = self.get("vary")
        fields = [v.strip() for v in current.split(",") if v.strip()] if isinstance(current, str) else []
        if "*" in fields or field.lower() in (v.lower() for v in fields):
            return
        self.set("vary", ", ".join(fields + [field]))

    # Status

    @property
    def status(self) -> int:
        return self.res.status_code

    @status.setter
    def status(self, code: int) -> None:
        if self.headers_sent:
            return
        if not isinstance(code, int) or isinstance(code, bool):
            raise TypeError("status code must be a number")
        if not 100 <= code <= 999:
            raise ValueError(f"invalid status code: {code}")
        self._explicit_status = True
        self.res.status_code = code
        self.__dict__.pop("_message", None)
        if self.body is not None and code in statuses.EMPTY:
            self.body = None

    @property
    def message(self) -> str:
        return self.__dict__.get("_message") or statuses.message(self.status) or ""

    @message.setter
    def message(self, value: str) -> None:
        self._message = value

    # Body

    @property
    def body(self) -> Any:
        return self.__dict__.get("_body")

    @body.setter
    def body(self, value: Any) -> None:
        original = self.__dict__.get("_body")
        self._body = value

        if value is None:
            if self.status not in statuses.EMPTY:
                self.status = 204
            self._explicit_null_body = True
            self.remove("content-type")
            self.remove("content-length")
            self.remove("transfer-encoding")
            return

        if not self.__dict__.get("_explicit_status"):
            self.status = 200

        set_type = not self.has("content-type")

        if isinstance(value, str):
            if set_type:
                self.type = "html" if _HTML_START.match(value) else "text"
            self.length = len(value.encode("utf-8"))
            return

        if isinstance(value, (bytes, bytearray, memoryview)):
            if set_type:
                self.type = "bin"
            self.length = len(value)
            return

        if is_stream(value):
            if original is not None and original is not value:
                self.remove("content-length")
            if set_type:
                self.type = "bin"
            return

        self.remove("content-length")
        self.type = "json"

    @property
    def length(self) -> Optional[int]:
        value = self.res.get_header("content-length")
        if isinstance(value, str) and value.isdigit():
            return int(value)
        body = self.body
        if body is None or is_stream(body):
            return None
        if isinstance(body, str):
            return len(body.encode("utf-8"))
        if isinstance(body, (bytes, bytearray, memoryview)):
            return len(body)
        return None

    @length.setter
    def length(self, value: int) -> None:
        if not self.has("transfer-encoding"):
            self.set("content-length", int(value))

    @property
    def type(self) -> str:
        value = self.get("content-type")
        if not isinstance(value, str):
            return ""
        return value.partition(";")[0].strip()

    @type.setter
    def type(self, value: Optional[str]) -> None:
        mime = content_type(value) if value else None
        if mime:
            self.set("content-type", mime)
        else:
            self.remove("content-type")

    def is_(self, *types: str) -> Union[str, bool]:
        actual = self.type
        if not types:
            return actual or False
        main, _, sub = actual.partition("/")
        for candidate in types:
            expected = normalize_type(candidate)
            if expected is None:
                continue
            e_main, _, e_sub = expected.partition("/")
            if e_main in ("*", main) and e_sub in ("*", sub):
                return candidate
        return False

    @property
    def writable(self) -> bool:
        return self.res.writable

    # Caching headers

    @property
    def last_modified(self) -> Optional[datetime]:
        value = self.get("last-modified")
        return parsedate_to_datetime(value) if value else None

    @last_modified.setter
    def last_modified(self, value: datetime) -> None:
        self.set("last-modified", format_datetime(value, usegmt=True))

    @property
    def etag(self) -> str:
        return self.get("etag")

    @etag.setter
    def etag(self, value: str) -> None:
        if not re.match(r'^(W/)?"', value):
            value = f'"{value}"'
        self.set("etag", value)

    # Helpers

    def redirect(self, url: str, alt: Optional[str] = None) -> None:
        """Redirect to ``url``; ``"back"`` uses the Referer, falling back to ``alt`` or ``/``."""
        if url == "back":
            url = self.ctx.get("referrer") or alt or "/"
        self.set("location", quote(url, safe=":/?#[]@!$&'()*+,;=%~"))

        if self.status not in statuses.REDIRECT:
            self.status = 302

        if self.request.accepts("html"):
            escaped = html.escape(url)
            self.type = "text/html; charset=utf-8"
            self.body = f'Redirecting to <a href="{escaped}">{escaped}</a>.'
            return

        self.type = "text/plain; charset=utf-8"
        self.body = f"Redirecting to {url}."

    def attachment(self, filename: Optional[str] = None) -> None:
        if filename:
            self.type = splitext(filename)[1] or "bin"
            name = basename(filename)
            self.set("content-disposition", f'attachment; filename="{name}"')
        else:
            self.set("content-disposition", "attachment")

    def to_json(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message, "header": self.header}

    inspect = to_json

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.message}>"
