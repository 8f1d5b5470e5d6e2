"""
Exceptions for the Cascade framework.

``HTTPException`` carries an HTTP status and an ``expose`` flag telling the
default error sink whether the failure is an expected, client-facing one.
"""

import json
from typing import Any, Dict, Optional

from cascade import statuses


class CascadeException(Exception):
    """Base class for framework errors."""


class MiddlewareError(CascadeException):
    """Raised when the middleware chain is driven incorrectly."""


class ClientDisconnect(CascadeException, ConnectionError):
    """The client went away before the response finished."""

    def __init__(self, message: str = "client disconnected"):
        super().__init__(message)
        self.code = "ECONNRESET"


class HTTPException(CascadeException):
    """
    An error with an HTTP status attached.

    Client errors (< 500) are exposed by default; server errors are not.
    Extra keyword properties are stored as attributes, so middleware can
    attach context such as ``code`` or ``details``.
    """

    def __init__(self,
                 status_code: int = 500,
                 message: Optional[str] = None,
                 expose: Optional[bool] = None,
                 headers: Optional[Dict[str, str]] = None,
                 **props: Any):
        if status_code < 400:
            status_code = 500
        self.status_code = status_code
        self.message = message or statuses.message(status_code) or str(status_code)
        self.expose = status_code < 500 if expose is None else expose
        self.headers = dict(headers or {})
        for key, value in props.items():
            setattr(self, key, value)
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status_code, "message": self.message}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.status_code} {self.message!r}>"


class BadRequest(HTTPException):
    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        super().__init__(400, message, **kwargs)


class Forbidden(HTTPException):
    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        super().__init__(403, message, **kwargs)


class NotFound(HTTPException):
    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        super().__init__(404, message, **kwargs)


def create_error(status: int = 500, message: Optional[str] = None, **props: Any) -> HTTPException:
    """Build an ``HTTPException`` for ``status``."""
    return HTTPException(status, message, **props)
