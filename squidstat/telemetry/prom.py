"""Prometheus collector for squid cache manager reports.

Each scrape runs one fetch per report and turns the records into metric
families:

- counters -> ``squid_<key>_total`` counters (``sample_time`` is a gauge)
- service_times -> ``squid_service_times_<key>`` gauges
- ``squid_up`` -> 1 when the counters report was fetched
- ``squid_exporter_scrape_duration_seconds``

Keys that sanitise to the same metric name collapse to one family; the
last record wins.
"""
from __future__ import annotations

import re
import time
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Protocol

from prometheus_client import CollectorRegistry
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from ..core.errors import SquidstatError
from ..core.schemas import FetchResult, Record
from .logging import get_logger

NAMESPACE = "squid"
GAUGE_COUNTERS = frozenset({"sample_time"})

_INVALID = re.compile(r"[^a-zA-Z0-9_]")


class ReportSource(Protocol):
    def get_counters(self) -> FetchResult:
        ...

    def get_service_times(self) -> FetchResult:
        ...


def metric_name(*parts: str) -> str:
    name = "_".join(_INVALID.sub("_", p).strip("_") for p in parts if p)
    name = re.sub(r"_+", "_", name)
    if name[:1].isdigit():
        name = "_" + name
    return name


def _counter_name(key: str) -> str:
    # CounterMetricFamily drops a trailing _total, so "a" and "a_total" collide.
    return metric_name(NAMESPACE, key).removesuffix("_total")


def _service_time_name(key: str) -> str:
    return metric_name(NAMESPACE, "service_times", key.lower())


def _last_wins(records: Iterable[Record], name_of: Callable[[str], str]) -> Dict[str, Record]:
    """Index records by exported metric name; a later record replaces an earlier one."""
    out: Dict[str, Record] = {}
    for rec in records:
        out[name_of(rec.key)] = rec
    return out


class SquidCollector(Collector):
    def __init__(
        self,
        source: ReportSource,
        extract_service_times: bool = True,
        labels: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._source = source
        self._extract_service_times = extract_service_times
        self._labels = dict(labels or {})
        self._log = get_logger("SquidCollector")

    def _label_names(self) -> List[str]:
        return list(self._labels)

    def _label_values(self) -> List[str]:
        return list(self._labels.values())

    def _gauge(self, name: str, doc: str, value: float) -> GaugeMetricFamily:
        g = GaugeMetricFamily(name, doc, labels=self._label_names())
        g.add_metric(self._label_values(), value)
        return g

    def _counter_families(self, result: FetchResult) -> Iterator[Metric]:
        for name, (key, value) in _last_wins(result, _counter_name).items():
            doc = f"squid counter {key}"
            if key in GAUGE_COUNTERS:
                yield self._gauge(name, doc, value)
                continue
            c = CounterMetricFamily(name, doc, labels=self._label_names())
            c.add_metric(self._label_values(), value)
            yield c

    def _service_time_families(self, result: FetchResult) -> Iterator[Metric]:
        for name, (key, value) in _last_wins(result, _service_time_name).items():
            yield self._gauge(name, f"squid service time {key}", value)

    def collect(self) -> Iterator[Metric]:
        families: List[Metric] = []
        start = time.perf_counter()
        up = 0.0
        try:
            counters = self._source.get_counters()
        except SquidstatError as exc:
            self._log.error(str(exc))
        else:
            up = 1.0
            families.extend(self._counter_families(counters))

        if self._extract_service_times:
            try:
                times = self._source.get_service_times()
            except SquidstatError as exc:
                self._log.error(str(exc))
            else:
                families.extend(self._service_time_families(times))
        elapsed = time.perf_counter() - start

        yield self._gauge(metric_name(NAMESPACE, "up"), "Was the last query of squid successful.", up)
        yield from families
        yield self._gauge(
            metric_name(NAMESPACE, "exporter_scrape_duration_seconds"),
            "Time spent fetching squid reports.",
            elapsed,
        )


def build_registry(collector: SquidCollector) -> CollectorRegistry:
    # Private registry: the exporter publishes squid metrics only.
    registry = CollectorRegistry(auto_describe=False)
    registry.register(collector)
    return registry
