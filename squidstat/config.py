"""Configuration for the cache manager client.

Values are frozen after construction; every fetch reads them and carries
nothing forward.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True, slots=True)
class ProtocolDefaults:
    """Literal values written on the wire.

    - user_agent: sent in the ``User-Agent`` header; squid only answers
      cache_object requests from clients it recognises.
    - proxy_source_host/port: fabricated client endpoint declared in the
      PROXY header.
    - proxy_destination_host: declared destination address; the port is the
      configured squid port.
    - request_host: host part of the ``cache_object://`` URI and ``Host``.
    """

    user_agent: str = "squidclient/3.5.12"
    proxy_source_host: str = "127.0.0.1"
    proxy_source_port: int = 80
    proxy_destination_host: str = "127.0.0.1"
    request_host: str = "localhost"


DEFAULT_PROTOCOL = ProtocolDefaults()


def build_basic_auth(login: str, password: str) -> str:
    """Return base64("login:password"), or "" when no login is given."""
    if not login:
        return ""
    return base64.b64encode(f"{login}:{password}".encode("utf-8")).decode("ascii")


@dataclass(frozen=True, slots=True)
class ClientConfig:
    hostname: str = "localhost"
    port: int = 3128
    auth_token: str = ""
    proxy_header_enabled: bool = False
    # None keeps sockets blocking: an unresponsive squid stalls the fetch.
    timeout: Optional[float] = None
    protocol: ProtocolDefaults = field(default=DEFAULT_PROTOCOL)

    @classmethod
    def from_credentials(
        cls,
        hostname: str,
        port: int,
        login: str = "",
        password: str = "",
        proxy_header_enabled: bool = False,
        timeout: Optional[float] = None,
    ) -> "ClientConfig":
        return cls(
            hostname=hostname,
            port=int(port),
            auth_token=build_basic_auth(login, password),
            proxy_header_enabled=proxy_header_enabled,
            timeout=timeout,
        )
