# File: core/aggregator.py

from typing import Dict, Iterable, Sequence

from clash_exporter.core.models import ChainAggregate, Connection

CHAIN_SEPARATOR = ","


def chain_key(chains: Sequence[str]) -> str:
    """Label value for an ordered proxy chain; direct connections map to ""."""
    return CHAIN_SEPARATOR.join(chains)


def aggregate_chains(connections: Iterable[Connection]) -> Dict[str, ChainAggregate]:
    """
    Fold connections into per-chain totals keyed by chain_key().
    Order inside a chain matters: ["a", "b"] and ["b", "a"] are separate keys.
    """
    out: Dict[str, ChainAggregate] = {}
    for conn in connections:
        key = chain_key(conn.chains)
        agg = out.get(key)
        if agg is None:
            agg = out[key] = ChainAggregate()
        agg.add(conn)
    return out
