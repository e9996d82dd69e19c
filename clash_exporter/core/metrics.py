# File: core/metrics.py

import threading
import time
from typing import Dict, NamedTuple, Tuple

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from clash_exporter.core.models import ChainAggregate, ConnectionsSnapshot

NAMESPACE = "clash"


class ConnectionSample(NamedTuple):
    id:       str
    upload:   int
    download: int


class ChainSample(NamedTuple):
    chain:       str
    connections: int
    upload:      int
    download:    int


class MetricsView(NamedTuple):
    """Everything one scrape exports for Clash itself. Never mutated once built."""
    connections:    int
    download_total: int
    upload_total:   int
    per_connection: Tuple[ConnectionSample, ...]
    per_chain:      Tuple[ChainSample, ...]


EMPTY_VIEW = MetricsView(0, 0, 0, (), ())


def build_view(snapshot: ConnectionsSnapshot, chains: Dict[str, ChainAggregate]) -> MetricsView:
    """
    Connections are keyed by id: a repeated id keeps its last entry, and
    `connections` counts distinct ids so it matches the labelled series.
    Chain aggregates still fold every listed entry.
    """
    by_id = {c.id: ConnectionSample(c.id, c.upload, c.download) for c in snapshot.connections}
    return MetricsView(
        connections=len(by_id),
        download_total=snapshot.download_total,
        upload_total=snapshot.upload_total,
        per_connection=tuple(by_id.values()),
        per_chain=tuple(
            ChainSample(key, agg.connection_count, agg.upload, agg.download)
            for key, agg in chains.items()
        ),
    )


class ClashCollector(Collector):
    """
    Custom collector backed by a single immutable MetricsView.

    publish() swaps the whole view under a lock, so every label set of the
    previous cycle is replaced at once and a scrape never sees a half-built
    state.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._view = EMPTY_VIEW

    @property
    def view(self) -> MetricsView:
        with self._lock:
            return self._view

    def publish(self, snapshot: ConnectionsSnapshot, chains: Dict[str, ChainAggregate]) -> MetricsView:
        view = build_view(snapshot, chains)
        with self._lock:
            self._view = view
        return view

    def collect(self):
        view = self.view

        yield GaugeMetricFamily(
            f"{NAMESPACE}_connections", "Number of current connections.",
            value=view.connections,
        )
        yield GaugeMetricFamily(
            f"{NAMESPACE}_download_bytes", "Total data downloaded in bytes.",
            value=view.download_total,
        )
        yield GaugeMetricFamily(
            f"{NAMESPACE}_upload_bytes", "Total data uploaded in bytes.",
            value=view.upload_total,
        )

        chain_conns = GaugeMetricFamily(
            f"{NAMESPACE}_chain_connections",
            "Number of current connections per proxy chain.", labels=["chain"],
        )
        chain_down = GaugeMetricFamily(
            f"{NAMESPACE}_chain_download_bytes",
            "Total data downloaded in bytes per proxy chain.", labels=["chain"],
        )
        chain_up = GaugeMetricFamily(
            f"{NAMESPACE}_chain_upload_bytes",
            "Total data uploaded in bytes per proxy chain.", labels=["chain"],
        )
        for s in view.per_chain:
            chain_conns.add_metric([s.chain], s.connections)
            chain_down.add_metric([s.chain], s.download)
            chain_up.add_metric([s.chain], s.upload)
        yield chain_conns
        yield chain_down
        yield chain_up

        conn_down = GaugeMetricFamily(
            f"{NAMESPACE}_connection_download_bytes",
            "Total data downloaded in bytes per connection.", labels=["id"],
        )
        conn_up = GaugeMetricFamily(
            f"{NAMESPACE}_connection_upload_bytes",
            "Total data uploaded in bytes per connection.", labels=["id"],
        )
        for s in view.per_connection:
            conn_down.add_metric([s.id], s.download)
            conn_up.add_metric([s.id], s.upload)
        yield conn_down
        yield conn_up


class ExporterMetrics:
    """
    Owns the registry shared by the poll loop (writer) and the HTTP front (reader).
    Holds the Clash collector plus the exporter's own health metrics.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.clash = ClashCollector()
        self.registry.register(self.clash)

        self.collections = Counter(
            "clash_exporter_collections_total",
            "Successful collections from the Clash API",
            registry=self.registry,
        )
        self.collection_errors = Counter(
            "clash_exporter_collection_errors_total",
            "Failed collections from the Clash API",
            ["stage"],
            registry=self.registry,
        )
        self.collection_duration = Histogram(
            "clash_exporter_collection_duration_seconds",
            "Duration of one fetch/decode/publish cycle in seconds",
            registry=self.registry,
        )
        self.last_success = Gauge(
            "clash_exporter_last_success_timestamp_seconds",
            "Unix time of the last successful collection",
            registry=self.registry,
        )
        for stage in ("fetch", "decode"):
            self.collection_errors.labels(stage=stage)

    def publish(self, snapshot: ConnectionsSnapshot, chains: Dict[str, ChainAggregate]) -> MetricsView:
        view = self.clash.publish(snapshot, chains)
        self.collections.inc()
        self.last_success.set(time.time())
        return view
