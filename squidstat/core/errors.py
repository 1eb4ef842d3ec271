"""Common exceptions for squidstat."""
from __future__ import annotations


class SquidstatError(Exception):
    pass


class CacheConnectionError(SquidstatError):
    """Dialing the cache manager or moving bytes over the socket failed."""


class ProtocolError(SquidstatError):
    """The cache manager reply could not be framed as an HTTP response."""


class NonSuccessStatusError(ProtocolError):
    def __init__(self, status: int, context: str = "") -> None:
        msg = f"non success code {status} while fetching metrics"
        super().__init__(f"{context}: {msg}" if context else msg)
        self.status = status


class LineDecodeError(SquidstatError):
    """A single report line could not be turned into a record.

    Recoverable: the fetch skips the line and keeps going.
    """

    def __init__(self, report: str, line: str, reason: str) -> None:
        super().__init__(f"{report} - could not parse line ({reason}): {line!r}")
        self.report = report
        self.line = line
        self.reason = reason
