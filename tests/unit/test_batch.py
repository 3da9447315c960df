"""
Unit tests for BatchProcessor / AsyncBatchProcessor and grouping helpers.
"""

from types import SimpleNamespace

import pytest

from solr_stream import (
    AsyncBatchProcessor,
    AsyncSolrFlow,
    BatchConfig,
    BatchProcessor,
    SolrFlow,
    UpdateResponse,
    UpdateSettings,
    upsert,
)
from solr_stream.utils import grouped


def counting_client():
    sizes = []

    def _update(collection, request):
        sizes.append(len(request))
        return UpdateResponse()

    return SimpleNamespace(update=_update, _sizes=sizes)


def test_flushes_on_max_rows():
    client = counting_client()
    flow = SolrFlow.documents("c", None, client)
    committed = []

    with BatchProcessor(flow, BatchConfig(max_rows=2, max_ms=60_000), committed.extend) as bp:
        for i in range(5):
            bp.add(upsert({"id": str(i)}, pass_through=i))
        assert bp.pending == 1

    assert client._sizes == [2, 2, 1]
    assert [r.pass_through for r in committed] == [0, 1, 2, 3, 4]
    assert bp.batches == 3
    assert bp.written == 5


def test_flushes_on_age():
    client = counting_client()
    bp = BatchProcessor(SolrFlow.documents("c", None, client), BatchConfig(max_rows=100, max_ms=0))
    bp.add(upsert({"id": "1"}))
    assert client._sizes == [1]
    assert bp.pending == 0


def test_close_is_safe_twice():
    client = counting_client()
    bp = BatchProcessor(SolrFlow.documents("c", None, client), BatchConfig(max_rows=10, max_ms=60_000))
    bp.add(upsert({"id": "1"}))
    assert len(bp.close()) == 1
    assert bp.close() == []
    assert client._sizes == [1]


def test_failed_results_reach_callback(fake_solr, solr):
    fake_solr.fail_updates = "connect"
    seen = []
    flow = SolrFlow.documents("books", UpdateSettings(commit_within=5), solr)
    with BatchProcessor(flow, BatchConfig(max_rows=3, max_ms=60_000), seen.extend) as bp:
        bp.add(upsert({"title": "a"}, 0))
    assert [r.ok for r in seen] == [False]
    assert bp.written == 0


@pytest.mark.parametrize("kwargs", [{"max_rows": 0}, {"max_ms": -1}])
def test_batch_config_validation(kwargs):
    with pytest.raises(ValueError):
        BatchConfig(**kwargs)


def test_grouped():
    assert list(grouped(range(5), 2)) == [[0, 1], [2, 3], [4]]
    assert list(grouped([], 3)) == []
    with pytest.raises(ValueError):
        list(grouped([1], 0))


@pytest.mark.asyncio
async def test_async_batch_processor_with_async_callback():
    sizes = []
    committed = []

    async def _update(collection, request):
        sizes.append(len(request))
        return UpdateResponse()

    async def commit(results):
        committed.extend(r.pass_through for r in results)

    flow = AsyncSolrFlow.documents("c", None, SimpleNamespace(update=_update))
    async with AsyncBatchProcessor(flow, BatchConfig(max_rows=3, max_ms=60_000), commit) as bp:
        for i in range(7):
            await bp.add(upsert({"id": str(i)}, i))

    assert sizes == [3, 3, 1]
    assert committed == list(range(7))
    assert bp.written == 7
