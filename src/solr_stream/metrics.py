"""
Prometheus metrics for the connector.

Registered in the global prometheus_client REGISTRY on import.
"""

from prometheus_client import Counter, Histogram

MESSAGES_WRITTEN_TOTAL = Counter(
    "solr_messages_written_total",
    "Messages processed by the write connector, by outcome",
    ["collection", "status"],
)

UPDATE_LATENCY = Histogram(
    "solr_update_latency_seconds",
    "Latency of one batched Solr update request",
    ["collection"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

TUPLES_READ_TOTAL = Counter(
    "solr_tuples_read_total",
    "Tuples emitted by the read adapter",
)


def record_results(collection: str, results) -> None:
    ok = sum(1 for r in results if r.status == 0)
    failed = len(results) - ok
    if ok:
        MESSAGES_WRITTEN_TOTAL.labels(collection=collection, status="success").inc(ok)
    if failed:
        MESSAGES_WRITTEN_TOTAL.labels(collection=collection, status="failure").inc(failed)
