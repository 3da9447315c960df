"""
Read adapter: a Solr tuple stream exposed as a lazy iterator.

Every ``next()`` reads exactly one tuple from the cursor, so a slow consumer
directly throttles how fast the server-side cursor advances. The cursor is
opened on the first pull and closed on EOF, on any error (including
KeyboardInterrupt / cancellation mid-read), on ``close()`` and on context
exit. A source is single-use.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Optional

from loguru import logger

from .errors import StreamError
from .metrics import TUPLES_READ_TOTAL
from .tuples import StreamTuple, TupleStream


class SolrSource(Iterator[StreamTuple]):
    """
    Usage:
        stream = solr.stream("books", 'search(books, q="*:*", fl="title", sort="title asc")')
        with SolrSource.from_tuple_stream(stream) as source:
            titles = [t["title"] for t in source]
    """

    def __init__(self, stream: TupleStream):
        self._stream = stream
        self._opened = False
        self._closed = False

    @classmethod
    def from_tuple_stream(cls, stream: TupleStream) -> "SolrSource":
        return cls(stream)

    @classmethod
    def from_expression(
        cls, client, collection: str, expr: str, params: Optional[Mapping[str, Any]] = None
    ) -> "SolrSource":
        return cls(client.stream(collection, expr, params))

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "SolrSource":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __iter__(self) -> "SolrSource":
        return self

    def __next__(self) -> StreamTuple:
        if self._closed:
            raise StopIteration
        try:
            if not self._opened:
                self._opened = True
                self._stream.open()
            t = self._stream.read()
        except BaseException:
            self.close()
            raise

        if t.exception is not None:
            self.close()
            raise StreamError(t.exception)
        if t.eof:
            self.close()
            raise StopIteration
        TUPLES_READ_TOTAL.inc()
        return t

    def __del__(self):
        # abandoned mid-stream (``break`` without ``with``)
        if getattr(self, "_opened", False) and not getattr(self, "_closed", True):
            self.close()

    def close(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._opened:
            self._stream.close()
            logger.debug("Tuple source closed")
