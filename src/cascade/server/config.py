"""
Application configuration for Cascade.

Defaults are read from the environment so that a deployment can be tuned
without code changes.
"""

import os
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


def _env_bool(name: str, default: str = 'False') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, '').split(',') if item.strip()]


@dataclass
class AppConfig:
    """Application and server settings"""
    # Application
    env: str = field(default_factory=lambda: os.getenv('CASCADE_ENV', 'development'))
    proxy: bool = field(default_factory=lambda: _env_bool('TRUST_PROXY'))
    proxy_ip_header: str = field(default_factory=lambda: os.getenv('PROXY_IP_HEADER', 'X-Forwarded-For'))
    max_ips_count: int = field(default_factory=lambda: int(os.getenv('MAX_IPS_COUNT', '0')))
    subdomain_offset: int = field(default_factory=lambda: int(os.getenv('SUBDOMAIN_OFFSET', '2')))
    keys: List[str] = field(default_factory=lambda: _env_list('APP_KEYS'))
    silent: bool = field(default_factory=lambda: _env_bool('SILENT'))

    # Server
    host: str = field(default_factory=lambda: os.getenv('HOST', '127.0.0.1'))
    port: int = field(default_factory=lambda: int(os.getenv('PORT', '8000')))
    backlog: int = field(default_factory=lambda: int(os.getenv('BACKLOG', '2048')))
    keep_alive_timeout: int = field(default_factory=lambda: int(os.getenv('KEEP_ALIVE_TIMEOUT', '5')))
    access_log: bool = field(default_factory=lambda: _env_bool('ACCESS_LOG', 'True'))
    debug: bool = field(default_factory=lambda: _env_bool('DEBUG'))
    use_uvloop: bool = field(default_factory=lambda: _env_bool('USE_UVLOOP'))
    ssl_certfile: Optional[str] = field(default_factory=lambda: os.getenv('SSL_CERTFILE'))
    ssl_keyfile: Optional[str] = field(default_factory=lambda: os.getenv('SSL_KEYFILE'))

    def update(self, **overrides: Any) -> 'AppConfig':
        """Apply known settings from ``overrides``; unknown names raise."""
        for key, value in overrides.items():
            if key not in self.__dataclass_fields__:
                raise TypeError(f"unknown setting: {key}")
            setattr(self, key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
