from __future__ import annotations

import pytest

pytest.importorskip("fastapi")

from fastapi.testclient import TestClient  # noqa: E402

from squidstat.core.decode import decode_line, FORMATS  # noqa: E402
from squidstat.core.errors import CacheConnectionError, LineDecodeError  # noqa: E402
from squidstat.core.schemas import FetchResult  # noqa: E402
from squidstat.exporter.fastapi_app import build_app  # noqa: E402


class _FakeClient:
    """Decodes canned report bodies instead of dialing squid."""

    def __init__(self, bodies: dict[str, str], fail: bool = False) -> None:
        self.bodies = bodies
        self.fail = fail

    def fetch(self, report: str) -> FetchResult:
        if self.fail:
            raise CacheConnectionError(f"error getting {report}: dial 127.0.0.1:3128: refused")
        result = FetchResult(report)
        for line in self.bodies.get(report, "").splitlines(keepends=True):
            try:
                rec = decode_line(FORMATS[report], line)
            except LineDecodeError as err:
                result.skipped.append(err)
                continue
            if rec is not None:
                result.records.append(rec)
        return result

    def get_counters(self) -> FetchResult:
        return self.fetch("counters")

    def get_service_times(self) -> FetchResult:
        return self.fetch("service_times")


def _make_client(**kw) -> TestClient:
    fake = _FakeClient({"counters": "a = 1\nbad\nb = 2\n", "service_times": "DNS:\nDNS Lookups: 0.5\n"}, **kw)
    return TestClient(build_app(fake))  # type: ignore[arg-type]


def test_health():
    resp = _make_client().get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_report_records_and_skips():
    resp = _make_client().get("/reports/counters")
    assert resp.status_code == 200
    body = resp.json()
    assert body["report"] == "counters"
    assert body["records"] == [{"key": "a", "value": 1.0}, {"key": "b", "value": 2.0}]
    assert body["skipped"][0]["line"] == "bad\n"
    assert body["stream_error"] is None

    resp = _make_client().get("/reports/service_times")
    assert resp.json()["records"] == [{"key": "DNS_Lookups", "value": 0.5}]


def test_unknown_report_404():
    assert _make_client().get("/reports/info").status_code == 404


def test_fetch_failure_502():
    resp = _make_client(fail=True).get("/reports/counters")
    assert resp.status_code == 502
    assert "error getting counters" in resp.json()["detail"]


def test_metrics_endpoint():
    resp = _make_client().get("/metrics")
    assert resp.status_code == 200
    assert "squid_a_total 1.0" in resp.text
    assert "squid_service_times_dns_lookups 0.5" in resp.text
