from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from typing import List

import pytest


@dataclass
class FakeSquid:
    """Loopback server answering each connection with a canned reply."""

    response: bytes = b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\n\r\n"
    stall: bool = False
    requests: List[bytes] = field(default_factory=list)
    _sock: socket.socket | None = field(init=False, default=None)
    _stop: threading.Event = field(init=False, default_factory=threading.Event)

    @property
    def port(self) -> int:
        assert self._sock is not None
        return self._sock.getsockname()[1]

    def start(self) -> "FakeSquid":
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(8)
        self._sock.settimeout(0.2)
        threading.Thread(target=self._serve, daemon=True).start()
        return self

    def _serve(self) -> None:
        assert self._sock is not None
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2.0)
                data = b""
                while b"\r\n\r\n" not in data:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    data += chunk
                self.requests.append(data)
                if self.stall:
                    self._stop.wait(2.0)
                    continue
                conn.sendall(self.response)

    def stop(self) -> None:
        self._stop.set()
        if self._sock is not None:
            self._sock.close()


@pytest.fixture
def fake_squid():
    servers: List[FakeSquid] = []

    def _make(body: bytes = b"", status: str = "200 OK", stall: bool = False, headers: str = "") -> FakeSquid:
        head = f"HTTP/1.0 {status}\r\nServer: squid\r\nContent-Type: text/plain\r\n{headers}\r\n".encode("ascii")
        srv = FakeSquid(response=head + body, stall=stall).start()
        servers.append(srv)
        return srv

    yield _make
    for srv in servers:
        srv.stop()


@pytest.fixture
def free_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port
