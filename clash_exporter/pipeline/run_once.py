# pipeline/run_once.py
"""
One fetch → decode → aggregate → publish cycle.
"""

import logging

from clash_exporter.connectors.base import Connector
from clash_exporter.core.aggregator import aggregate_chains
from clash_exporter.core.errors import FetchError, SnapshotDecodeError
from clash_exporter.core.metrics import ExporterMetrics
from clash_exporter.core.models import decode_snapshot

LOG = logging.getLogger(__name__)


def run_once(connector: Connector,
             metrics: ExporterMetrics,
             on_decode_error: str = "exit") -> bool:
    """
    Returns True when a new view was published, False when the cycle was
    skipped and the previous view stays exported.

    A decode failure is re-raised when `on_decode_error` is "exit".
    """
    with metrics.collection_duration.time():
        try:
            raw = connector.fetch_snapshot()
        except FetchError as e:
            metrics.collection_errors.labels(stage="fetch").inc()
            LOG.error("Fetch failed, keeping previous metrics", extra={"error": str(e)})
            return False

        try:
            snapshot = decode_snapshot(raw)
        except SnapshotDecodeError as e:
            metrics.collection_errors.labels(stage="decode").inc()
            LOG.error("Decode failed", extra={"error": str(e), "policy": on_decode_error})
            if on_decode_error == "exit":
                raise
            return False

        chains = aggregate_chains(snapshot.connections)
        metrics.publish(snapshot, chains)

    LOG.debug("Published metrics", extra={
        "connections": len(snapshot.connections),
        "chains": len(chains),
    })
    return True
