"""
HTTP-related test fixtures and ASGI doubles
"""
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from cascade.http.transport import create_transport


def make_scope(method: str = "GET",
               path: str = "/",
               query_string: bytes = b"",
               headers: Optional[Dict[str, str]] = None,
               client: Optional[Tuple[str, int]] = ("127.0.0.1", 52000),
               scheme: str = "http") -> dict:
    """Build an ASGI HTTP scope."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": scheme,
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string,
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()],
        "client": client,
        "server": ("testserver", 80),
    }


class ASGIRecorder:
    """Feeds request messages to an app and records what it sends back."""

    def __init__(self, body: bytes = b"", disconnect: bool = False):
        if disconnect:
            self.incoming: List[dict] = [{"type": "http.disconnect"}]
        else:
            self.incoming = [{"type": "http.request", "body": body, "more_body": False}]
        self.messages: List[dict] = []

    async def receive(self) -> dict:
        if self.incoming:
            return self.incoming.pop(0)
        return {"type": "http.disconnect"}

    async def send(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def start(self) -> Optional[dict]:
        for message in self.messages:
            if message["type"] == "http.response.start":
                return message
        return None

    @property
    def status(self) -> Optional[int]:
        return self.start["status"] if self.start else None

    @property
    def headers(self) -> Dict[str, str]:
        if not self.start:
            return {}
        return {k.decode("latin-1"): v.decode("latin-1") for k, v in self.start["headers"]}

    def header_values(self, name: str) -> List[str]:
        if not self.start:
            return []
        return [v.decode("latin-1") for k, v in self.start["headers"] if k.decode("latin-1") == name]

    @property
    def body_messages(self) -> List[dict]:
        return [m for m in self.messages if m["type"] == "http.response.body"]

    @property
    def body(self) -> bytes:
        return b"".join(m["body"] for m in self.body_messages)

    @property
    def completed(self) -> bool:
        bodies = self.body_messages
        return bool(bodies) and not bodies[-1].get("more_body", False)


@pytest.fixture
def recorder():
    """Factory for ASGI receive/send doubles."""
    return ASGIRecorder


@pytest.fixture
def make_context(app):
    """Build a context on ``app`` and return it with its recorder."""
    def factory(method: str = "GET", path: str = "/", query_string: bytes = b"",
                headers: Optional[Dict[str, str]] = None, client=("127.0.0.1", 52000),
                scheme: str = "http", body: bytes = b"", disconnect: bool = False,
                application=None):
        target = application or app
        asgi = ASGIRecorder(body=body, disconnect=disconnect)
        scope = make_scope(method, path, query_string, headers, client, scheme)
        req, res = create_transport(scope, asgi.receive, asgi.send)
        return target.create_context(req, res), asgi

    return factory


@pytest_asyncio.fixture
async def client(app):
    """Test client for making HTTP requests."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
