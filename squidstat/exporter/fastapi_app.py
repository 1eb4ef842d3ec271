"""FastAPI application exposing squid reports as JSON and Prometheus text."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

try:
    from fastapi import FastAPI, HTTPException, Response
except ImportError as exc:  # pragma: no cover - executed when fastapi missing
    raise ImportError(
        "FastAPI integration requires the 'api' extra: install via "
        "`pip install squidstat[api]`."
    ) from exc
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from pydantic import BaseModel

from ..client import CacheObjectClient
from ..core.decode import FORMATS
from ..core.errors import SquidstatError
from ..telemetry.prom import SquidCollector, build_registry


class RecordModel(BaseModel):
    key: str
    value: float


class SkippedLine(BaseModel):
    line: str
    reason: str


class ReportResponse(BaseModel):
    report: str
    records: List[RecordModel]
    skipped: List[SkippedLine]
    stream_error: Optional[str] = None


@dataclass
class AppConfig:
    client: CacheObjectClient
    registry: CollectorRegistry


def build_app(
    client: CacheObjectClient,
    registry: Optional[CollectorRegistry] = None,
    extract_service_times: bool = True,
) -> FastAPI:
    """Construct a FastAPI application around a cache manager client."""
    if registry is None:
        registry = build_registry(SquidCollector(client, extract_service_times=extract_service_times))
    config = AppConfig(client=client, registry=registry)
    app = FastAPI(title="squidstat", version="0.1.0")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/reports/{report}", response_model=ReportResponse)
    def report(report: str) -> ReportResponse:
        if report not in FORMATS:
            raise HTTPException(status_code=404, detail=f"unknown report {report!r}")
        try:
            result = config.client.fetch(report)
        except SquidstatError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return ReportResponse(
            report=result.report,
            records=[RecordModel(key=r.key, value=r.value) for r in result],
            skipped=[SkippedLine(line=e.line, reason=e.reason) for e in result.skipped],
            stream_error=None if result.stream_error is None else repr(result.stream_error),
        )

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(config.registry), media_type=CONTENT_TYPE_LATEST)

    return app


__all__ = ["build_app"]
