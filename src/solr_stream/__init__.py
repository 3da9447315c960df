"""
Solr stream connector

Streams write-intents into Solr in batches with per-message results, and reads
streaming-expression results back as a lazy iterator.

Usage:
    from solr_stream import SolrClient, SolrFlow, SolrSource, UpdateSettings, upsert

    with SolrClient("http://localhost:8983/solr") as solr:
        flow = SolrFlow.documents("books", UpdateSettings(commit_within=5), solr)
        results = flow.process([upsert({"id": "1", "title": "Akka in Action"}, pass_through=0)])

        with SolrSource.from_tuple_stream(solr.stream("books", expr)) as source:
            for t in source:
                print(t["title"])
"""

from .client import SolrClient, UpdateResponse
from .aclient import AsyncSolrClient
from .flow import SolrFlow, SolrSink
from .aflow import AsyncSolrFlow, AsyncSolrSink
from .source import SolrSource
from .asource import AsyncSolrSource
from .batch import BatchProcessor, BatchConfig
from .abatch import AsyncBatchProcessor
from .messages import (
    IncomingMessage,
    IncomingUpsertMessage,
    IncomingDeleteByIdsMessage,
    IncomingDeleteByQueryMessage,
    IncomingAtomicUpdateMessage,
    upsert,
    delete_by_ids,
    delete_by_query,
    atomic_update,
)
from .results import WriteResult, STATUS_OK, STATUS_TRANSPORT_ERROR, STATUS_DOCUMENT_ERROR
from .settings import UpdateSettings, NO_AUTO_COMMIT
from .tuples import StreamTuple, TupleStream
from .errors import (
    SolrConnectorError,
    ConfigurationError,
    TransportError,
    SolrServerError,
    StreamError,
    WriteFailedError,
)

__version__ = "1.0.0"
__all__ = [
    "SolrClient",
    "AsyncSolrClient",
    "UpdateResponse",
    "SolrFlow",
    "SolrSink",
    "AsyncSolrFlow",
    "AsyncSolrSink",
    "SolrSource",
    "AsyncSolrSource",
    "BatchProcessor",
    "AsyncBatchProcessor",
    "BatchConfig",
    "IncomingMessage",
    "IncomingUpsertMessage",
    "IncomingDeleteByIdsMessage",
    "IncomingDeleteByQueryMessage",
    "IncomingAtomicUpdateMessage",
    "upsert",
    "delete_by_ids",
    "delete_by_query",
    "atomic_update",
    "WriteResult",
    "STATUS_OK",
    "STATUS_TRANSPORT_ERROR",
    "STATUS_DOCUMENT_ERROR",
    "UpdateSettings",
    "NO_AUTO_COMMIT",
    "StreamTuple",
    "TupleStream",
    "SolrConnectorError",
    "ConfigurationError",
    "TransportError",
    "SolrServerError",
    "StreamError",
    "WriteFailedError",
]
