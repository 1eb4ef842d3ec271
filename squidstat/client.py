"""Client for the squid cache manager (``cache_object``) interface."""
from __future__ import annotations

import http.client
import socket
from contextlib import closing
from typing import Callable, Optional

from .config import ClientConfig
from .core.decode import COUNTERS, FORMATS, SERVICE_TIMES, LineFormat, decode_line
from .core.errors import CacheConnectionError, LineDecodeError, NonSuccessStatusError, ProtocolError
from .core.schemas import FetchResult
from .telemetry.logging import get_logger
from .transport.cache_object import LineReader, connect, read_response, send_request

SkipSink = Callable[[LineDecodeError], None]


class CacheObjectClient:
    """Fetches and decodes cache manager reports.

    Every fetch dials a new connection; the client holds only its frozen
    configuration and is safe to share between threads.
    """

    def __init__(self, config: ClientConfig, on_skip: Optional[SkipSink] = None) -> None:
        self.config = config
        self._log = get_logger("CacheObjectClient", {"squid": f"{config.hostname}:{config.port}"})
        self._on_skip = on_skip or self._log_skip

    def _log_skip(self, err: LineDecodeError) -> None:
        self._log.warning(str(err))

    def _open(self, report: str) -> socket.socket:
        try:
            sock = connect(self.config)
        except CacheConnectionError as exc:
            raise CacheConnectionError(f"error getting {report}: {exc}") from exc
        try:
            send_request(sock, self.config, report)
        except CacheConnectionError as exc:
            sock.close()
            raise CacheConnectionError(f"error getting {report}: {exc}") from exc
        return sock

    def _response(self, sock: socket.socket, report: str) -> http.client.HTTPResponse:
        try:
            return read_response(sock)
        except NonSuccessStatusError as exc:
            raise NonSuccessStatusError(exc.status, context=f"error getting {report}") from exc
        except (CacheConnectionError, ProtocolError) as exc:
            raise type(exc)(f"error getting {report}: {exc}") from exc

    def fetch(self, fmt: LineFormat | str) -> FetchResult:
        """Fetch a report (a LineFormat or its name) and decode it line by line.

        Raises CacheConnectionError or ProtocolError when the report cannot
        be retrieved at all, with the report name in the message. Malformed
        lines are skipped and recorded.
        """
        if isinstance(fmt, str):
            if fmt not in FORMATS:
                raise ValueError(f"unknown report {fmt!r}; expected one of {sorted(FORMATS)}")
            fmt = FORMATS[fmt]
        with closing(self._open(fmt.name)) as sock:
            with closing(self._response(sock, fmt.name)) as body:
                lines = LineReader(body)
                result = FetchResult(report=fmt.name)
                for line in lines:
                    try:
                        record = decode_line(fmt, line)
                    except LineDecodeError as err:
                        result.skipped.append(err)
                        self._on_skip(err)
                        continue
                    if record is not None:
                        result.records.append(record)
                result.stream_error = lines.error
        if result.stream_error is not None:
            self._log.error(f"error reading {fmt.name} body: {result.stream_error!r}")
        return result

    def get_counters(self) -> FetchResult:
        return self.fetch(COUNTERS)

    def get_service_times(self) -> FetchResult:
        return self.fetch(SERVICE_TIMES)
