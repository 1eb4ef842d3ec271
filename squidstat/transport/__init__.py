"""Transport subpackage.

Connection, request encoding, response framing and line reading for the
squid cache manager protocol.
"""

from .cache_object import (
    LineReader,
    build_request,
    connect,
    encode_proxy_header,
    read_response,
    send_request,
)

__all__ = [
    "LineReader",
    "build_request",
    "connect",
    "encode_proxy_header",
    "read_response",
    "send_request",
]
