"""Line decoders for the cache manager text reports.

Both reports are ``<label><delimiter><value>`` per line and differ only in
the delimiter, in whether section headers occur, and in how the label is
turned into a key. ``LineFormat`` captures those differences; one mapping
function serves both.

counters::

    client_http.requests = 1234
    sample_time = 1609459200.123456 (Fri, 01 Jan 2021 00:00:00 GMT)

service_times::

    HTTP Requests (All):
    HTTP Requests 5 min avg: 50% 0.0123
    DNS Lookups: 0.0045
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .errors import LineDecodeError
from .schemas import Record


@dataclass(frozen=True, slots=True)
class LineFormat:
    name: str
    delimiter: str
    # A line ending in the delimiter with nothing after it is a header.
    has_headers: bool = False
    normalize_key: bool = False
    percentile_marker: Optional[str] = None


COUNTERS = LineFormat(name="counters", delimiter="=")
SERVICE_TIMES = LineFormat(
    name="service_times",
    delimiter=":",
    has_headers=True,
    normalize_key=True,
    percentile_marker="%",
)

FORMATS = {fmt.name: fmt for fmt in (COUNTERS, SERVICE_TIMES)}

# ASCII decimal or exponent notation, inf or nan; rejects "1_000" and non-ASCII digits.
_NUMBER = re.compile(r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)\Z", re.IGNORECASE)


def _first_token(value: str) -> str:
    parts = value.split(None, 1)
    return parts[0] if parts else ""


def _normalize(key: str) -> str:
    return key.replace(" ", "_").replace("(", "").replace(")", "")


def decode_line(fmt: LineFormat, line: str) -> Optional[Record]:
    """Map one report line to a record.

    Returns None for section headers. Raises LineDecodeError when the line
    is not a metric.
    """
    body = line.rstrip("\r\n")
    if fmt.has_headers and body.endswith(fmt.delimiter):
        return None

    idx = body.find(fmt.delimiter)
    if idx < 0:
        raise LineDecodeError(fmt.name, line, f"no {fmt.delimiter!r} delimiter")
    key = body[:idx].strip()
    if fmt.normalize_key:
        key = _normalize(key)
    if not key.strip("_"):
        raise LineDecodeError(fmt.name, line, "empty key")

    value = body[idx + 1 :].strip()
    if fmt.percentile_marker is not None and fmt.percentile_marker in value:
        pidx = value.find(fmt.percentile_marker)
        qualifier = value[:pidx].strip()
        # "% 0.5" has no qualifier; the marker stays in the payload and fails below.
        if qualifier:
            key = f"{key}_{qualifier}"
            value = value[pidx + 1 :].strip()

    payload = _first_token(value)
    if not _NUMBER.match(payload):
        raise LineDecodeError(fmt.name, line, f"non-numeric value {payload!r}")
    return Record(key, float(payload))


def decode_counter(line: str) -> Record:
    record = decode_line(COUNTERS, line)
    if record is None:
        raise LineDecodeError(COUNTERS.name, line, "no value")
    return record


def decode_service_time(line: str) -> Optional[Record]:
    return decode_line(SERVICE_TIMES, line)
