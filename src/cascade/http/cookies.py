"""
Cookie accessor bound to one request/response pair.

Reads come from the request ``Cookie`` header; writes append ``Set-Cookie``
headers to the response. When the application has ``keys`` configured,
cookies are signed by default with an HMAC-SHA256 ``<name>.sig`` companion
cookie. Verification accepts any configured key and re-signs with the
first, so keys can be rotated.
"""

import base64
import hashlib
import hmac
import logging
import re
from datetime import datetime
from email.utils import format_datetime
from http.cookies import CookieError, SimpleCookie
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

# RFC 6265 section 4.1.1
_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_OCTETS = r"[\x21\x23-\x2b\x2d-\x3a\x3c-\x5b\x5d-\x7e]*"
_VALUE = re.compile(f'"{_OCTETS}"|{_OCTETS}')
_ATTRIBUTE = re.compile(r"[\x20-\x3a\x3c-\x7e]+")


def _check(pattern: re.Pattern, value: str, field: str) -> None:
    if not isinstance(value, str) or not pattern.fullmatch(value):
        raise TypeError(f"argument {field} is invalid: {value!r}")


class Keygrip:
    """Rotating list of signing keys."""

    def __init__(self, keys: Sequence[str]):
        if not keys:
            raise ValueError("Keys must be provided.")
        self.keys = [key.encode() if isinstance(key, str) else key for key in keys]

    def _sign(self, data: str, key: bytes) -> str:
        digest = hmac.new(key, data.encode(), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()

    def sign(self, data: str) -> str:
        return self._sign(data, self.keys[0])

    def index(self, data: str, digest: str) -> int:
        """Position of the key that produced ``digest``, or -1."""
        for position, key in enumerate(self.keys):
            if hmac.compare_digest(self._sign(data, key), digest):
                return position
        return -1

    def verify(self, data: str, digest: str) -> bool:
        return self.index(data, digest) > -1


class Cookies:
    """Get and set cookies for one exchange."""

    def __init__(self, req, res, keys: Optional[Sequence[str]] = None, secure: bool = False):
        self.req = req
        self.res = res
        self.secure = secure
        self.keys = Keygrip(keys) if keys else None
        self._parsed: Optional[Dict[str, str]] = None

    @property
    def request_cookies(self) -> Dict[str, str]:
        if self._parsed is None:
            jar = SimpleCookie()
            try:
                jar.load(self.req.headers.get("cookie", ""))
            except CookieError:
                logger.debug("ignoring malformed cookie header")
            self._parsed = {name: morsel.value for name, morsel in jar.items()}
        return self._parsed

    def get(self, name: str, signed: Optional[bool] = None) -> Optional[str]:
        signed = bool(self.keys) if signed is None else signed
        value = self.request_cookies.get(name)
        if not signed or value is None:
            return value

        if self.keys is None:
            raise ValueError(".keys required for signed cookies")

        sig_name = name + ".sig"
        remote = self.request_cookies.get(sig_name)
        if remote is None:
            return None

        data = f"{name}={value}"
        position = self.keys.index(data, remote)
        if position < 0:
            self.set(sig_name, None, path="/", signed=False)
            return None
        if position > 0:
            self.set(sig_name, self.keys.sign(data), signed=False)
        return value

    def set(self,
            name: str,
            value: Optional[str],
            max_age: Optional[int] = None,
            expires: Optional[datetime] = None,
            path: str = "/",
            domain: Optional[str] = None,
            secure: Optional[bool] = None,
            http_only: bool = True,
            same_site: Optional[str] = None,
            signed: Optional[bool] = None,
            overwrite: bool = False) -> "Cookies":
        """Queue a ``Set-Cookie`` header. ``value=None`` expires the cookie.

        Raises ``TypeError`` when the name, value, path, domain or same-site
        setting cannot be written into the header as-is.
        """
        _check(_NAME, name, "name")
        if value is not None:
            _check(_VALUE, value, "value")
        for field, setting in (("path", path), ("domain", domain), ("same_site", same_site)):
            if setting:
                _check(_ATTRIBUTE, setting, field)

        secure = self.secure if secure is None else secure
        if secure and not self.secure:
            raise ValueError("Cannot send secure cookie over unencrypted connection")

        signed = bool(self.keys) if signed is None else signed
        if signed and self.keys is None:
            raise ValueError(".keys required for signed cookies")

        headers = self._outgoing()
        self._push(headers, self._serialize(
            name, value, max_age, expires, path, domain, secure, http_only, same_site
        ), name, overwrite)

        if signed:
            sig_value = None if value is None else self.keys.sign(f"{name}={value}")
            self._push(headers, self._serialize(
                name + ".sig", sig_value, max_age, expires, path, domain, secure, http_only, same_site
            ), name + ".sig", overwrite)

        self.res.set_header("set-cookie", headers)
        return self

    def _outgoing(self) -> List[str]:
        current = self.res.get_header("set-cookie")
        if current is None:
            return []
        return [current] if isinstance(current, str) else list(current)

    @staticmethod
    def _push(headers: List[str], cookie: str, name: str, overwrite: bool) -> None:
        if overwrite:
            prefix = name + "="
            headers[:] = [h for h in headers if not h.startswith(prefix)]
        headers.append(cookie)

    @staticmethod
    def _serialize(name, value, max_age, expires, path, domain, secure, http_only, same_site) -> str:
        if value is None:
            parts = [f"{name}=", "Max-Age=0",
                     "Expires=Thu, 01 Jan 1970 00:00:00 GMT"]
        else:
            parts = [f"{name}={value}"]
            if max_age is not None:
                parts.append(f"Max-Age={int(max_age)}")
            if expires is not None:
                parts.append(f"Expires={format_datetime(expires, usegmt=True)}")
        if path:
            parts.append(f"Path={path}")
        if domain:
            parts.append(f"Domain={domain}")
        if secure:
            parts.append("Secure")
        if http_only:
            parts.append("HttpOnly")
        if same_site:
            parts.append(f"SameSite={same_site}")
        return "; ".join(parts)
