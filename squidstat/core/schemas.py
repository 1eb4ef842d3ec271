"""Shared value types for decoded reports."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional

from .errors import LineDecodeError


class Record(NamedTuple):
    key: str
    value: float


@dataclass
class FetchResult:
    """Records decoded from one report, in server order.

    ``skipped`` holds the decode errors of lines that were dropped and
    ``stream_error`` the read error that ended the body early, if any.
    Iterating the result yields its records.
    """

    report: str
    records: List[Record] = field(default_factory=list)
    skipped: List[LineDecodeError] = field(default_factory=list)
    stream_error: Optional[BaseException] = None

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def complete(self) -> bool:
        return self.stream_error is None
