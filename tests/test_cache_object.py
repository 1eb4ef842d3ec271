from __future__ import annotations

import io
import socket

import pytest

from squidstat.config import ClientConfig, ProtocolDefaults, build_basic_auth
from squidstat.core.errors import NonSuccessStatusError, ProtocolError
from squidstat.transport.cache_object import (
    LineReader,
    build_request,
    encode_proxy_header,
    read_response,
    send_request,
)


def test_build_request_without_auth():
    assert build_request("counters") == (
        b"GET cache_object://localhost/counters HTTP/1.0\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: squidclient/3.5.12\r\n"
        b"Accept: */*\r\n"
        b"\r\n"
    )


def test_build_request_with_auth_and_custom_agent():
    token = build_basic_auth("admin", "secret")
    req = build_request("service_times", token, ProtocolDefaults(user_agent="probe/1.0"))
    assert req.startswith(b"GET cache_object://localhost/service_times HTTP/1.0\r\n")
    assert b"User-Agent: probe/1.0\r\n" in req
    assert b"Proxy-Authorization: Basic YWRtaW46c2VjcmV0\r\nAccept: */*\r\n\r\n" in req


def test_basic_auth_empty_login():
    assert build_basic_auth("", "ignored") == ""


def test_proxy_header_v1():
    assert encode_proxy_header("127.0.0.1", 80, "127.0.0.1", 3128) == b"PROXY TCP4 127.0.0.1 127.0.0.1 80 3128\r\n"
    assert encode_proxy_header("::1", 80, "::1", 3128) == b"PROXY TCP6 ::1 ::1 80 3128\r\n"
    with pytest.raises(ValueError):
        encode_proxy_header("127.0.0.1", 80, "::1", 3128)


def test_send_request_writes_proxy_header_first():
    a, b = socket.socketpair()
    with a, b:
        cfg = ClientConfig(port=3129, proxy_header_enabled=True)
        send_request(a, cfg, "counters")
        a.shutdown(socket.SHUT_WR)
        data = b""
        while True:
            chunk = b.recv(4096)
            if not chunk:
                break
            data += chunk
    assert data.startswith(b"PROXY TCP4 127.0.0.1 127.0.0.1 80 3129\r\nGET cache_object://localhost/counters HTTP/1.0\r\n")


def _reply(raw: bytes):
    a, b = socket.socketpair()
    a.sendall(raw)
    a.close()
    return b


def test_read_response_ok_body():
    sock = _reply(b"HTTP/1.0 200 OK\r\nContent-Type: text/plain\r\n\r\na = 1\nb = 2\n")
    with sock:
        resp = read_response(sock)
        assert resp.status == 200
        assert list(LineReader(resp)) == ["a = 1\n", "b = 2\n"]


def test_read_response_non_200():
    sock = _reply(b"HTTP/1.0 401 Unauthorized\r\n\r\n")
    with sock:
        with pytest.raises(NonSuccessStatusError) as ei:
            read_response(sock)
    assert ei.value.status == 401
    assert isinstance(ei.value, ProtocolError)


@pytest.mark.parametrize("raw", [b"garbage\r\n\r\n", b""])
def test_read_response_malformed(raw):
    sock = _reply(raw)
    with sock:
        with pytest.raises(ProtocolError):
            read_response(sock)


class _FailingBody:
    def __init__(self, lines):
        self._lines = list(lines)

    def readline(self):
        if self._lines:
            return self._lines.pop(0)
        raise ConnectionResetError("peer reset")


def test_line_reader_records_read_error():
    reader = LineReader(_FailingBody([b"a = 1\n", b"b = 2\n"]))
    assert list(reader) == ["a = 1\n", "b = 2\n"]
    assert isinstance(reader.error, ConnectionResetError)


def test_line_reader_keeps_unterminated_tail_and_is_single_pass():
    reader = LineReader(io.BytesIO(b"a = 1\r\nb = 2"))
    assert list(reader) == ["a = 1\r\n", "b = 2"]
    assert reader.error is None
    with pytest.raises(RuntimeError):
        iter(reader)


def test_line_reader_replaces_invalid_utf8():
    reader = LineReader(io.BytesIO(b"k\xff = 1\n"))
    assert list(reader) == ["k� = 1\n"]
