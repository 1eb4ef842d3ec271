"""Metrics HTTP server for the squid exporter.

Serves ``generate_latest`` of a registry at the metrics path and a short
landing page at ``/``.
"""
from __future__ import annotations

import http.server
import threading
from dataclasses import dataclass, field
from functools import partial

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from .logging import get_logger

_LANDING = """<html>
<head><title>Squid Exporter</title></head>
<body>
<h1>Squid Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


class Handler(http.server.BaseHTTPRequestHandler):  # type: ignore[misc]
    def __init__(self, *args, registry: CollectorRegistry, metrics_path: str, **kwargs):  # noqa: ANN002, ANN003
        self.registry = registry
        self.metrics_path = metrics_path
        super().__init__(*args, **kwargs)

    def _send(self, code: int, blob: bytes, content_type: str) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(blob)))
        self.end_headers()
        self.wfile.write(blob)

    def do_GET(self):  # noqa: N802, ANN001
        path = self.path.split("?", 1)[0]
        if path == self.metrics_path:
            self._send(200, generate_latest(self.registry), CONTENT_TYPE_LATEST)
        elif path == "/":
            blob = _LANDING.format(path=self.metrics_path).encode("utf-8")
            self._send(200, blob, "text/html; charset=utf-8")
        else:
            self._send(404, b"not found\n", "text/plain; charset=utf-8")

    def log_message(self, format, *args):  # noqa: A002, ANN001, ANN002
        get_logger("MetricsServer").debug(format % args)


@dataclass
class MetricsServer:
    registry: CollectorRegistry
    host: str = "127.0.0.1"
    port: int = 9301
    metrics_path: str = "/metrics"
    _server: http.server.HTTPServer | None = field(init=False, default=None)
    _thread: threading.Thread | None = field(init=False, default=None)

    @property
    def address(self) -> tuple[str, int]:
        if self._server is None:
            return self.host, self.port
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        handler = partial(Handler, registry=self.registry, metrics_path=self.metrics_path)
        self._server = http.server.ThreadingHTTPServer((self.host, self.port), handler)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        get_logger("MetricsServer").info(f"listening on {self.address[0]}:{self.address[1]}{self.metrics_path}")

    def serve_forever(self) -> None:
        self.start()
        assert self._thread is not None
        try:
            self._thread.join()
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
