from __future__ import annotations

from typing import Any, AsyncIterator, Mapping, Optional

from loguru import logger

from .errors import StreamError
from .metrics import TUPLES_READ_TOTAL
from .tuples import AsyncTupleStream, StreamTuple


class AsyncSolrSource(AsyncIterator[StreamTuple]):
    """
    asyncio read adapter. Cancelling the consuming task while a read is in
    flight closes the cursor before CancelledError propagates. Only one task
    may pull at a time; a concurrent pull raises RuntimeError.

    Usage:
        async with AsyncSolrSource.from_tuple_stream(solr.stream("books", expr)) as source:
            async for t in source:
                ...
    """

    def __init__(self, stream: AsyncTupleStream):
        self._stream = stream
        self._opened = False
        self._closed = False
        self._reading = False

    @classmethod
    def from_tuple_stream(cls, stream: AsyncTupleStream) -> "AsyncSolrSource":
        return cls(stream)

    @classmethod
    def from_expression(
        cls, client, collection: str, expr: str, params: Optional[Mapping[str, Any]] = None
    ) -> "AsyncSolrSource":
        return cls(client.stream(collection, expr, params))

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "AsyncSolrSource":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def __aiter__(self) -> "AsyncSolrSource":
        return self

    async def __anext__(self) -> StreamTuple:
        if self._closed:
            raise StopAsyncIteration
        if self._reading:
            raise RuntimeError("another task is already reading from this source")
        self._reading = True
        try:
            if not self._opened:
                self._opened = True
                await self._stream.open()
            t = await self._stream.read()
        except BaseException:
            await self.aclose()
            raise
        finally:
            self._reading = False

        if t.exception is not None:
            await self.aclose()
            raise StreamError(t.exception)
        if t.eof:
            await self.aclose()
            raise StopAsyncIteration
        TUPLES_READ_TOTAL.inc()
        return t

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._opened:
            await self._stream.close()
            logger.debug("Async tuple source closed")
