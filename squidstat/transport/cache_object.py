"""Wire side of the squid cache manager protocol.

A fetch is a fresh TCP connection carrying an optional PROXY v1 preamble
followed by a literal HTTP/1.0 request for ``cache_object://<host>/<report>``.
The reply is ordinary HTTP/1.0 and is framed with ``http.client``.
"""
from __future__ import annotations

import http.client
import ipaddress
import socket
from typing import BinaryIO, Iterator, Optional

from ..config import ClientConfig, ProtocolDefaults
from ..core.errors import CacheConnectionError, NonSuccessStatusError, ProtocolError

REQUEST_LINE = "GET cache_object://{host}/{endpoint} HTTP/1.0"


def encode_proxy_header(src_host: str, src_port: int, dst_host: str, dst_port: int) -> bytes:
    """Encode a PROXY protocol version 1 header for a TCP stream."""
    src = ipaddress.ip_address(src_host)
    dst = ipaddress.ip_address(dst_host)
    if src.version != dst.version:
        raise ValueError(f"address family mismatch: {src_host} -> {dst_host}")
    family = "TCP4" if src.version == 4 else "TCP6"
    return f"PROXY {family} {src} {dst} {int(src_port)} {int(dst_port)}\r\n".encode("ascii")


def build_request(endpoint: str, auth_token: str = "", protocol: ProtocolDefaults | None = None) -> bytes:
    proto = protocol or ProtocolDefaults()
    lines = [
        REQUEST_LINE.format(host=proto.request_host, endpoint=endpoint),
        f"Host: {proto.request_host}",
        f"User-Agent: {proto.user_agent}",
    ]
    if auth_token:
        lines.append(f"Proxy-Authorization: Basic {auth_token}")
    lines.append("Accept: */*")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")


def connect(config: ClientConfig) -> socket.socket:
    try:
        return socket.create_connection((config.hostname, config.port), timeout=config.timeout)
    except OSError as exc:
        raise CacheConnectionError(f"dial {config.hostname}:{config.port}: {exc}") from exc


def send_request(sock: socket.socket, config: ClientConfig, endpoint: str) -> None:
    """Write the optional PROXY header and then the request."""
    proto = config.protocol
    payload = b""
    if config.proxy_header_enabled:
        payload += encode_proxy_header(
            proto.proxy_source_host,
            proto.proxy_source_port,
            proto.proxy_destination_host,
            config.port,
        )
    payload += build_request(endpoint, config.auth_token, proto)
    try:
        sock.sendall(payload)
    except OSError as exc:
        raise CacheConnectionError(f"write request for {endpoint}: {exc}") from exc


def read_response(sock: socket.socket) -> http.client.HTTPResponse:
    """Frame the reply; only status 200 is accepted."""
    resp = http.client.HTTPResponse(sock, method="GET")
    try:
        resp.begin()
    except http.client.HTTPException as exc:
        resp.close()
        raise ProtocolError(f"malformed response: {exc!r}") from exc
    except OSError as exc:
        resp.close()
        raise CacheConnectionError(f"read response: {exc}") from exc
    if resp.status != 200:
        resp.close()
        raise NonSuccessStatusError(resp.status)
    return resp


class LineReader:
    """Single-pass iterator over the text lines of a response body.

    Each line keeps its terminator. A read failure ends iteration and is
    kept in ``error`` instead of being raised, so callers decode whatever
    arrived before it. A body shorter than its Content-Length counts
    as a read failure.
    """

    def __init__(self, body: BinaryIO, encoding: str = "utf-8") -> None:
        self._body = body
        self._encoding = encoding
        self._started = False
        self.error: Optional[BaseException] = None

    def __iter__(self) -> Iterator[str]:
        if self._started:
            raise RuntimeError("LineReader is single-pass")
        self._started = True
        return self._produce()

    def _produce(self) -> Iterator[str]:
        while True:
            try:
                raw = self._body.readline()
            except (OSError, http.client.HTTPException) as exc:
                self.error = exc
                return
            if not raw:
                missing = getattr(self._body, "length", None)
                if missing:
                    # EOF before the declared Content-Length was read.
                    self.error = http.client.IncompleteRead(b"", missing)
                return
            yield raw.decode(self._encoding, errors="replace")
