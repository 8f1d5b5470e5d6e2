"""
Cascade request view.

A per-request object layered over the application's request defaults and
the transport request. It exposes header, URL, host and proxy-aware
address accessors plus content negotiation shortcuts.
"""

import ipaddress
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlencode

from cascade.delegation import Delegating
from cascade.http.accepts import normalize_type

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "PUT", "DELETE", "OPTIONS", "TRACE"})


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


class Request(Delegating):
    """Request view. Wired to ``app``, ``req``, ``res``, ``ctx`` and ``response`` on creation."""

    # Headers

    @property
    def header(self) -> Dict[str, str]:
        return self.req.headers

    @header.setter
    def header(self, value: Dict[str, str]) -> None:
        self.req.headers = {k.lower(): v for k, v in value.items()}

    headers = header

    def get(self, field: str) -> str:
        """Return a request header, case-insensitively, or ``""``."""
        name = field.lower()
        if name in ("referer", "referrer"):
            return self.req.headers.get("referer") or self.req.headers.get("referrer") or ""
        return self.req.headers.get(name, "")

    # URL

    @property
    def url(self) -> str:
        return self.req.url

    @url.setter
    def url(self, value: str) -> None:
        self.req.url = value

    @property
    def method(self) -> str:
        return self.req.method

    @method.setter
    def method(self, value: str) -> None:
        self.req.method = value.upper()

    @property
    def path(self) -> str:
        return self.url.partition("?")[0]

    @path.setter
    def path(self, value: str) -> None:
        search = self.search
        self.url = value + search

    @property
    def querystring(self) -> str:
        return self.url.partition("?")[2]

    @querystring.setter
    def querystring(self, value: str) -> None:
        value = value.lstrip("?")
        self.url = self.path + ("?" + value if value else "")

    @property
    def search(self) -> str:
        qs = self.querystring
        return "?" + qs if qs else ""

    @property
    def query(self) -> Dict[str, Union[str, List[str]]]:
        parsed = parse_qs(self.querystring, keep_blank_values=True)
        return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}

    @query.setter
    def query(self, value: Dict[str, Any]) -> None:
        self.querystring = urlencode(value, doseq=True)

    @property
    def origin(self) -> str:
        return f"{self.protocol}://{self.host}"

    @property
    def href(self) -> str:
        if self.original_url.startswith(("http://", "https://")):
            return self.original_url
        return self.origin + self.original_url

    # Host and protocol

    @property
    def host(self) -> str:
        host = ""
        if self.app.proxy:
            host = self.get("x-forwarded-host")
        if not host:
            host = self.get(":authority") or self.get("host")
        return host.split(",")[0].strip()

    @property
    def hostname(self) -> str:
        host = self.host
        if not host:
            return ""
        if host.startswith("["):
            return host[1:].partition("]")[0]
        return host.partition(":")[0]

    @property
    def protocol(self) -> str:
        if self.app.proxy:
            forwarded = self.get("x-forwarded-proto")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return "https" if self.req.scheme in ("https", "wss") else "http"

    @property
    def secure(self) -> bool:
        return self.protocol == "https"

    @property
    def subdomains(self) -> List[str]:
        hostname = self.hostname
        if not hostname or _is_ip(hostname):
            return []
        offset = self.app.subdomain_offset
        return list(reversed(hostname.split(".")))[offset:]

    # Client address

    @property
    def ips(self) -> List[str]:
        """Forwarded addresses, client first, when the proxy is trusted."""
        if not self.app.proxy:
            return []
        value = self.get(self.app.proxy_ip_header)
        ips = [ip.strip() for ip in value.split(",") if ip.strip()]
        max_count = self.app.max_ips_count
        if max_count > 0:
            ips = ips[-max_count:]
        return ips

    @property
    def ip(self) -> str:
        if "_ip" not in self.__dict__:
            ips = self.ips
            self._ip = ips[0] if ips else (self.req.remote_address or "")
        return self._ip

    @ip.setter
    def ip(self, value: str) -> None:
        self._ip = value

    # Body metadata

    @property
    def type(self) -> str:
        return self.get("content-type").partition(";")[0].strip().lower()

    @property
    def charset(self) -> str:
        for param in self.get("content-type").split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset":
                return value.strip('"').lower()
        return ""

    @property
    def length(self) -> Optional[int]:
        value = self.get("content-length")
        return int(value) if value.isdigit() else None

    @property
    def has_body(self) -> bool:
        return bool(self.get("transfer-encoding")) or self.length is not None

    @property
    def idempotent(self) -> bool:
        return self.method in IDEMPOTENT_METHODS

    def is_(self, *types: str) -> Union[str, bool, None]:
        """Match the request ``Content-Type`` against ``types``; ``None`` without a body."""
        if not self.has_body:
            return None
        actual = self.type
        if not types:
            return actual or False
        if not actual:
            return False
        a_main, _, a_sub = actual.partition("/")
        for candidate in types:
            expected = normalize_type(candidate)
            if expected is None:
                continue
            e_main, _, e_sub = expected.partition("/")
            if e_main in ("*", a_main) and e_sub in ("*", a_sub):
                return candidate
        return False

    # Negotiation

    def accepts(self, *types: str):
        return self.accept.types(*types)

    def accepts_encodings(self, *encodings: str):
        return self.accept.encodings(*encodings)

    def accepts_charsets(self, *charsets: str):
        return self.accept.charsets(*charsets)

    def accepts_languages(self, *languages: str):
        return self.accept.languages(*languages)

    def to_json(self) -> Dict[str, Any]:
        return {"method": self.method, "url": self.url, "header": self.header}

    inspect = to_json

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.url}>"
