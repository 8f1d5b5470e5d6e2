"""
ASGI transport adapter.

Wraps an ASGI HTTP ``scope``/``receive``/``send`` triple in a request and a
response object shaped like a classic server transport: the response has a
settable status code, mutable headers guarded by ``headers_sent``, and
``write``/``end``/``pipe`` operations, plus finish observers that learn
whether the exchange completed or was aborted.
"""

import inspect
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from cascade.exceptions import ClientDisconnect

logger = logging.getLogger(__name__)

Chunk = Union[bytes, bytearray, memoryview, str]
FinishObserver = Callable[[Optional[BaseException]], Any]

PIPE_CHUNK_SIZE = 64 * 1024


def to_bytes(chunk: Chunk, encoding: str = "utf-8") -> bytes:
    if isinstance(chunk, str):
        return chunk.encode(encoding)
    return bytes(chunk)


class TransportRequest:
    """Read side of one ASGI HTTP exchange."""

    def __init__(self, scope: Dict[str, Any], receive: Callable, response: Optional["TransportResponse"] = None):
        self.scope = scope
        self._receive = receive
        self.response = response

        self.method: str = scope.get("method", "GET").upper()
        self.path: str = scope.get("path", "/")
        self.query_string: str = scope.get("query_string", b"").decode("latin-1")
        self.url: str = self.path + ("?" + self.query_string if self.query_string else "")
        self.scheme: str = scope.get("scheme", "http")
        self.http_version: str = scope.get("http_version", "1.1")
        self.headers: Dict[str, str] = self._parse_headers(scope.get("headers", []))

        client = scope.get("client")
        self.remote_address: Optional[str] = client[0] if client else None

        self._consumed = False
        self.disconnected = False

    @staticmethod
    def _parse_headers(raw_headers) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for name, value in raw_headers:
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            if key in headers:
                separator = "; " if key == "cookie" else ", "
                headers[key] = headers[key] + separator + text
            else:
                headers[key] = text
        return headers

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield the request body chunk by chunk. The body can be read once."""
        if self._consumed:
            raise RuntimeError("request body already consumed")
        self._consumed = True

        while True:
            message = await self._receive()
            if message["type"] == "http.request":
                body = message.get("body", b"")
                if body:
                    yield body
                if not message.get("more_body", False):
                    return
            elif message["type"] == "http.disconnect":
                self.disconnected = True
                error = ClientDisconnect()
                if self.response is not None:
                    self.response.abort(error)
                raise error

    async def read(self) -> bytes:
        chunks = [chunk async for chunk in self.stream()]
        return b"".join(chunks)

    def __repr__(self) -> str:
        return f"<TransportRequest {self.method} {self.url}>"


class TransportResponse:
    """Write side of one ASGI HTTP exchange."""

    def __init__(self, send: Callable):
        self._send = send
        self.status_code = 200
        self._headers: Dict[str, List[str]] = {}
        self.headers_sent = False
        self.finished = False
        self.aborted = False
        self._observers: List[FinishObserver] = []

    @property
    def writable(self) -> bool:
        return not (self.finished or self.aborted)

    # Headers

    def set_header(self, name: str, value: Union[str, List[str]]) -> None:
        if self.headers_sent:
            raise RuntimeError("cannot set headers after they are sent")
        values = [str(v) for v in value] if isinstance(value, (list, tuple)) else [str(value)]
        self._headers[name.lower()] = values

    def get_header(self, name: str) -> Optional[Union[str, List[str]]]:
        values = self._headers.get(name.lower())
        if values is None:
            return None
        return values[0] if len(values) == 1 else list(values)

    def has_header(self, name: str) -> bool:
        return name.lower() in self._headers

    def remove_header(self, name: str) -> None:
        if self.headers_sent:
            raise RuntimeError("cannot remove headers after they are sent")
        self._headers.pop(name.lower(), None)

    def header_names(self) -> List[str]:
        return list(self._headers)

    def get_headers(self) -> Dict[str, Union[str, List[str]]]:
        return {name: self.get_header(name) for name in self._headers}

    # Lifecycle

    def on_finished(self, observer: FinishObserver) -> None:
        """
        Register ``observer(error)`` to run once the exchange is over.

        ``error`` is ``None`` on normal completion. Observers added after the
        fact run immediately.
        """
        if self.finished:
            observer(None)
        elif self.aborted:
            observer(ClientDisconnect())
        else:
            self._observers.append(observer)

    def _notify(self, error: Optional[BaseException]) -> None:
        observers, self._observers = self._observers, []
        for observer in observers:
            observer(error)

    def abort(self, error: Optional[BaseException] = None) -> None:
        if not self.writable:
            return
        self.aborted = True
        logger.debug("response aborted: %s", error)
        self._notify(error or ClientDisconnect())

    async def _transmit(self, message: Dict[str, Any]) -> None:
        try:
            await self._send(message)
        except OSError as exc:
            error = ClientDisconnect(str(exc) or "send failed")
            self.abort(error)
            raise error from exc

    async def _start(self) -> None:
        if self.headers_sent:
            return
        self.headers_sent = True
        headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, values in self._headers.items()
            for value in values
        ]
        await self._transmit({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": headers,
        })

    async def write(self, chunk: Chunk) -> None:
        if not self.writable:
            raise RuntimeError("write after end")
        await self._start()
        await self._transmit({
            "type": "http.response.body",
            "body": to_bytes(chunk),
            "more_body": True,
        })

    async def end(self, chunk: Optional[Chunk] = None) -> None:
        if not self.writable:
            return
        body = to_bytes(chunk) if chunk is not None else b""
        if not self.headers_sent and body and not self.has_header("content-length"):
            self._headers["content-length"] = [str(len(body))]
        await self._start()
        await self._transmit({
            "type": "http.response.body",
            "body": body,
            "more_body": False,
        })
        self.finished = True
        self._notify(None)

    async def pipe(self, source: Any) -> None:
        """Drain ``source`` into the response, then end it."""
        try:
            if hasattr(source, "__aiter__"):
                async for chunk in source:
                    if not self.writable:
                        return
                    await self.write(chunk)
            elif hasattr(source, "read"):
                while self.writable:
                    chunk = source.read(PIPE_CHUNK_SIZE)
                    if inspect.isawaitable(chunk):
                        chunk = await chunk
                    if not chunk:
                        break
                    await self.write(chunk)
            else:
                for chunk in source:
                    if not self.writable:
                        return
                    await self.write(chunk)
            await self.end()
        finally:
            await _close(source)

    def __repr__(self) -> str:
        return f"<TransportResponse {self.status_code} sent={self.headers_sent} finished={self.finished}>"


async def _close(source: Any) -> None:
    closer = getattr(source, "aclose", None) or getattr(source, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result


def create_transport(scope: Dict[str, Any], receive: Callable, send: Callable):
    """Build the linked request/response pair for one ASGI HTTP call."""
    res = TransportResponse(send)
    req = TransportRequest(scope, receive, res)
    return req, res
