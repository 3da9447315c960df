from __future__ import annotations

from time import perf_counter
from typing import Any, AsyncIterable, AsyncIterator, Callable, Generic, Iterable, List, Mapping, Optional

from .errors import SolrConnectorError, SolrServerError, TransportError, WriteFailedError
from .flow import D, P, SolrFlow, _log_outcome, failure_status, map_response, uniform_results
from .metrics import UPDATE_LATENCY, record_results
from .results import STATUS_OK, STATUS_TRANSPORT_ERROR, WriteResult
from .settings import UpdateSettings


class AsyncSolrFlow(SolrFlow[D, P]):
    """
    asyncio write engine; same batching and result rules as SolrFlow.

    ``client`` is an AsyncSolrClient (anything with an awaitable ``update``).
    """

    async def process(self, batch: Iterable[Any]) -> List[WriteResult[P]]:  # type: ignore[override]
        batch = list(batch)
        if not batch:
            return []
        request, keys = self._build(batch)

        t0 = perf_counter()
        try:
            response = await self._client.update(self.collection, request)
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

    async def run(  # type: ignore[override]
        self, batches: AsyncIterable[Iterable[Any]]
    ) -> AsyncIterator[List[WriteResult[P]]]:
        async for batch in batches:
            yield await self.process(batch)


class AsyncSolrSink(Generic[D, P]):
    def __init__(self, flow: AsyncSolrFlow[D, P]):
        self.flow = flow

    @classmethod
    def documents(cls, collection: str, settings: Optional[UpdateSettings], client) -> "AsyncSolrSink":
        return cls(AsyncSolrFlow.documents(collection, settings, client))

    @classmethod
    def models(
        cls, collection: str, settings: Optional[UpdateSettings], client, model_cls: type
    ) -> "AsyncSolrSink":
        return cls(AsyncSolrFlow.models(collection, settings, client, model_cls))

    @classmethod
    def typeds(
        cls,
        collection: str,
        settings: Optional[UpdateSettings],
        client,
        binder: Callable[[Any], Mapping[str, Any]],
    ) -> "AsyncSolrSink":
        return cls(AsyncSolrFlow.typeds(collection, settings, client, binder))

    async def write(self, batch: Iterable[Any]) -> None:
        results = await self.flow.process(batch)
        if any(r.status != STATUS_OK for r in results):
            raise WriteFailedError(results)

    async def run(self, batches: AsyncIterable[Iterable[Any]]) -> int:
        total = 0
        async for batch in batches:
            batch = list(batch)
            await self.write(batch)
            total += len(batch)
        return total
