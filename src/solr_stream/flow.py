"""
Write connector: batches of IncomingMessage -> one Solr update -> results.

SolrFlow returns one WriteResult per message, in the order of the batch, with
the message's pass-through value attached. A failed request does not raise;
every message of the batch gets the same non-zero status instead, so a
downstream consumer committing offsets from pass-through values always sees
one result per input.

SolrSink is the variant for callers that do not need the results.
"""

from __future__ import annotations

from time import perf_counter
from typing import Any, Callable, Generic, Iterable, Iterator, List, Mapping, Optional, Sequence, TypeVar

from loguru import logger

from .errors import ConfigurationError, SolrConnectorError, SolrServerError, TransportError, WriteFailedError
from .metrics import UPDATE_LATENCY, record_results
from .request import (
    CommandKey,
    DocumentBinder,
    bind_document,
    build_update_request,
    model_binder,
    typed_binder,
)
from .results import STATUS_DOCUMENT_ERROR, STATUS_OK, STATUS_TRANSPORT_ERROR, WriteResult
from .settings import UpdateSettings

D = TypeVar("D")
P = TypeVar("P")


# ---------------------------
# Result mapping (shared with aflow)
# ---------------------------


def uniform_results(batch: Sequence[Any], status: int, error: Optional[str] = None) -> List[WriteResult]:
    return [WriteResult(status, m.pass_through, error) for m in batch]


def failure_status(exc: SolrConnectorError) -> int:
    if isinstance(exc, SolrServerError) and exc.status:
        return exc.status
    return STATUS_TRANSPORT_ERROR


def map_response(batch: Sequence[Any], keys: Sequence[CommandKey], response) -> List[WriteResult]:
    """
    Map an update response onto the batch.

    Per-document errors (TolerantUpdateProcessor) fail only the messages they
    name. An error that cannot be attributed to a message fails every message
    that has not failed already.
    """
    if response.status != STATUS_OK:
        return uniform_results(batch, response.status, f"Solr status {response.status}")
    if not response.errors:
        return uniform_results(batch, STATUS_OK)

    errors: List[Optional[str]] = [None] * len(batch)
    unattributed: List[str] = []
    for err in response.errors:
        hit = False
        for i, key in enumerate(keys):
            if key.type == err.type and err.id in key.ids:
                errors[i] = err.message or f"{err.type} {err.id} rejected"
                hit = True
        if not hit:
            unattributed.append(f"{err.type} {err.id}: {err.message}")

    if unattributed:
        logger.warning(f"Unattributed per-document errors, failing whole batch: {unattributed}")
        fallback = "; ".join(unattributed)
        errors = [e if e is not None else fallback for e in errors]

    return [
        WriteResult(STATUS_OK, m.pass_through)
        if e is None
        else WriteResult(STATUS_DOCUMENT_ERROR, m.pass_through, e)
        for m, e in zip(batch, errors)
    ]


def _log_outcome(collection: str, results: Sequence[WriteResult]) -> None:
    failed = [r for r in results if r.status != STATUS_OK]
    if failed:
        logger.warning(
            f"Solr write to {collection}: {len(failed)}/{len(results)} failed "
            f"(status={failed[0].status}, error={failed[0].error})"
        )
    else:
        logger.debug(f"Solr write to {collection}: {len(results)} ok")


# ---------------------------
# Flow
# ---------------------------


class SolrFlow(Generic[D, P]):
    """
    Write engine for one collection.

    Usage:
        flow = SolrFlow.documents("books", UpdateSettings(commit_within=5), solr)
        for result in flow.process([upsert({"id": "1"}, pass_through=offset)]):
            if result.ok:
                committer.commit(result.pass_through)
    """

    def __init__(
        self,
        collection: str,
        settings: Optional[UpdateSettings],
        client,
        binder: DocumentBinder = bind_document,
    ):
        if not collection:
            raise ConfigurationError("collection is required")
        self.collection = collection
        self.settings = settings or UpdateSettings()
        self._client = client
        self._binder = binder

    @classmethod
    def documents(cls, collection: str, settings: Optional[UpdateSettings], client) -> "SolrFlow":
        """Documents are plain mappings of field -> value."""
        return cls(collection, settings, client, bind_document)

    @classmethod
    def models(
        cls, collection: str, settings: Optional[UpdateSettings], client, model_cls: type
    ) -> "SolrFlow":
        """Documents are pydantic models; aliases name the Solr fields."""
        return cls(collection, settings, client, model_binder(model_cls))

    @classmethod
    def typeds(
        cls,
        collection: str,
        settings: Optional[UpdateSettings],
        client,
        binder: Callable[[Any], Mapping[str, Any]],
    ) -> "SolrFlow":
        """Documents of any type, converted by ``binder``."""
        return cls(collection, settings, client, typed_binder(binder))

    def _build(self, batch: Sequence[Any]):
        return build_update_request(
            batch,
            self.settings,
            self._binder,
            id_field=getattr(self._client, "id_field", "id"),
            router_field=getattr(self._client, "router_field", None),
        )

    def process(self, batch: Iterable[Any]) -> List[WriteResult[P]]:
        """Write one batch; one result per message, same order."""
        batch = list(batch)
        if not batch:
            return []
        request, keys = self._build(batch)  # ConfigurationError surfaces here, before I/O

        t0 = perf_counter()
        try:
            response = self._client.update(self.collection, request)
        except (TransportError, SolrServerError) as e:
            results = uniform_results(batch, failure_status(e), str(e))
        except SolrConnectorError as e:
            results = uniform_results(batch, STATUS_TRANSPORT_ERROR, str(e))
        else:
            results = map_response(batch, keys, response)
        finally:
            UPDATE_LATENCY.labels(collection=self.collection).observe(perf_counter() - t0)

        record_results(self.collection, results)
        _log_outcome(self.collection, results)
        return results

    def run(self, batches: Iterable[Iterable[Any]]) -> Iterator[List[WriteResult[P]]]:
        """Lazily process a stream of batches, one at a time."""
        for batch in batches:
            yield self.process(batch)


class SolrSink(Generic[D, P]):
    """Write engine without result correlation; raises when a batch fails."""

    def __init__(self, flow: SolrFlow[D, P]):
        self.flow = flow

    @classmethod
    def documents(cls, collection: str, settings: Optional[UpdateSettings], client) -> "SolrSink":
        return cls(SolrFlow.documents(collection, settings, client))

    @classmethod
    def models(
        cls, collection: str, settings: Optional[UpdateSettings], client, model_cls: type
    ) -> "SolrSink":
        return cls(SolrFlow.models(collection, settings, client, model_cls))

    @classmethod
    def typeds(
        cls,
        collection: str,
        settings: Optional[UpdateSettings],
        client,
        binder: Callable[[Any], Mapping[str, Any]],
    ) -> "SolrSink":
        return cls(SolrFlow.typeds(collection, settings, client, binder))

    def write(self, batch: Iterable[Any]) -> None:
        results = self.flow.process(batch)
        if any(r.status != STATUS_OK for r in results):
            raise WriteFailedError(results)

    def run(self, batches: Iterable[Iterable[Any]]) -> int:
        """Write every batch; returns the number of messages written."""
        total = 0
        for batch in batches:
            batch = list(batch)
            self.write(batch)
            total += len(batch)
        return total
