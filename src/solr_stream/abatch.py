from __future__ import annotations

import asyncio
import inspect
from time import monotonic
from typing import Any, Awaitable, Callable, List, Optional, Union

from loguru import logger

from .aflow import AsyncSolrFlow
from .batch import BatchConfig  # reuse the same config dataclass
from .results import WriteResult

AsyncResultsCallback = Callable[[List[WriteResult]], Union[None, Awaitable[None]]]


class AsyncBatchProcessor:
    """
    asyncio batcher in front of an AsyncSolrFlow.

    Usage:

        flow = AsyncSolrFlow.documents("books", UpdateSettings(commit_within=5), solr)
        async with AsyncBatchProcessor(flow, BatchConfig(max_rows=100), on_results=commit) as bp:
            async for record in consumer:
                await bp.add(upsert(record.value, pass_through=record.offset))
        # auto-flush on context exit
    """

    def __init__(
        self,
        flow: AsyncSolrFlow,
        config: Optional[BatchConfig] = None,
        on_results: Optional[AsyncResultsCallback] = None,
    ):
        self._flow = flow
        self._cfg = config or BatchConfig()
        self._on_results = on_results
        self._pending: List[Any] = []
        self._t0 = monotonic()
        self.batches = 0
        self.written = 0

        # one flush at a time keeps batches in submission order
        self._lock = asyncio.Lock()

    # --------------- context management

    async def __aenter__(self) -> "AsyncBatchProcessor":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --------------- public API

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def add(self, message: Any) -> None:
        if not self._pending:
            self._t0 = monotonic()
        self._pending.append(message)
        await self._maybe_flush()

    async def flush(self) -> List[WriteResult]:
        async with self._lock:
            if not self._pending:
                return []
            batch, self._pending = self._pending, []
            self._t0 = monotonic()

            results = await self._flow.process(batch)
            self.batches += 1
            self.written += sum(1 for r in results if r.ok)
            if self._on_results is not None:
                out = self._on_results(results)
                if inspect.isawaitable(out):
                    await out
            return results

    async def close(self) -> List[WriteResult]:
        results = await self.flush()
        logger.debug(f"AsyncBatchProcessor closed: batches={self.batches} written={self.written}")
        return results

    # --------------- internals

    async def _maybe_flush(self) -> None:
        if len(self._pending) >= self._cfg.max_rows:
            await self.flush()
            return
        elapsed_ms = (monotonic() - self._t0) * 1000.0
        if elapsed_ms >= self._cfg.max_ms:
            await self.flush()
