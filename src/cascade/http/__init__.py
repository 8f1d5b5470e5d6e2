"""
HTTP layer: ASGI transport adapter, request/response views, cookies and
content negotiation.
"""

from cascade.http.accepts import Accepts
from cascade.http.cookies import Cookies, Keygrip
from cascade.http.request import Request
from cascade.http.response import Response
from cascade.http.transport import TransportRequest, TransportResponse, create_transport

__all__ = [
    "Accepts",
    "Cookies",
    "Keygrip",
    "Request",
    "Response",
    "TransportRequest",
    "TransportResponse",
    "create_transport",
]
