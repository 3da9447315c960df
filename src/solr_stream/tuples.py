"""
Streaming-expression cursors.

Solr's ``/stream`` handler answers with a single JSON document::

    {"result-set": {"docs": [{...}, {...}, {"EOF": true, "RESPONSE_TIME": 4}]}}

The response is written as the expression runs, so the cursors here decode the
``docs`` array incrementally and hand out one tuple per ``read()`` instead of
loading the whole result set.
"""

from __future__ import annotations

import json
import re
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional, Protocol, runtime_checkable

import httpx
from loguru import logger

from .errors import TransportError, map_transport_error


class StreamTuple(Mapping[str, Any]):
    """One immutable record from a tuple stream, field order preserved."""

    __slots__ = ("_fields",)

    def __init__(self, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        data = dict(fields or {})
        data.update(kwargs)
        self._fields = MappingProxyType(data)

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"StreamTuple({dict(self._fields)!r})"

    @property
    def fields(self) -> Mapping[str, Any]:
        return self._fields

    @property
    def eof(self) -> bool:
        return bool(self._fields.get("EOF", False))

    @property
    def exception(self) -> Optional[str]:
        return self._fields.get("EXCEPTION")

    def get_string(self, key: str) -> Optional[str]:
        v = self._fields.get(key)
        if v is None:
            return None
        if isinstance(v, list):
            return str(v[0]) if v else None
        return str(v)

    def get_long(self, key: str) -> Optional[int]:
        v = self._fields.get(key)
        return int(v) if v is not None else None

    def get_double(self, key: str) -> Optional[float]:
        v = self._fields.get(key)
        return float(v) if v is not None else None


EOF_TUPLE = StreamTuple({"EOF": True})


@runtime_checkable
class TupleStream(Protocol):
    """Cursor contract consumed by SolrSource."""

    def open(self) -> None: ...

    def read(self) -> StreamTuple: ...

    def close(self) -> None: ...


@runtime_checkable
class AsyncTupleStream(Protocol):
    async def open(self) -> None: ...

    async def read(self) -> StreamTuple: ...

    async def close(self) -> None: ...


class ResultSetDecoder:
    """Incremental decoder for the ``result-set.docs`` array."""

    _DOCS = re.compile(r'"docs"\s*:\s*\[')
    _SKIP = " \t\r\n,"

    def __init__(self) -> None:
        self._buf = ""
        self._pos = 0
        self._in_docs = False
        self._closed = False
        self._json = json.JSONDecoder()

    def feed(self, text: str) -> None:
        self._buf = self._buf[self._pos :] + text
        self._pos = 0

    def next(self) -> Optional[dict]:
        """Next complete tuple, or None when more input is needed."""
        if self._closed:
            return {"EOF": True}
        if not self._in_docs:
            m = self._DOCS.search(self._buf, self._pos)
            if m is None:
                return None
            self._pos = m.end()
            self._in_docs = True

        buf = self._buf
        pos = self._pos
        while pos < len(buf) and buf[pos] in self._SKIP:
            pos += 1
        self._pos = pos
        if pos >= len(buf):
            return None
        if buf[pos] == "]":
            # array closed without an explicit EOF tuple
            self._closed = True
            return {"EOF": True}
        try:
            obj, end = self._json.raw_decode(buf, pos)
        except json.JSONDecodeError:
            return None
        self._pos = end
        return obj

    def pending(self) -> str:
        return self._buf[self._pos :]


def _stream_params(expr: str, extra: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    params = {"expr": expr}
    if extra:
        params.update(extra)
    return params


class SolrTupleStream:
    """Blocking cursor over ``POST /{collection}/stream``."""

    def __init__(
        self,
        http: httpx.Client,
        url: str,
        expr: str,
        params: Optional[Mapping[str, Any]] = None,
    ):
        self._http = http
        self._url = url
        self._expr = expr
        self._params = _stream_params(expr, params)
        self._cm = None
        self._chunks: Optional[Iterator[str]] = None
        self._decoder = ResultSetDecoder()

    @property
    def expr(self) -> str:
        return self._expr

    def open(self) -> None:
        if self._cm is not None:
            return
        logger.debug(f"Opening tuple stream {self._url} expr={self._expr}")
        try:
            self._cm = self._http.stream("POST", self._url, data=self._params)
            response = self._cm.__enter__()
            if response.is_error:
                response.read()
                response.raise_for_status()
            self._chunks = response.iter_text()
        except Exception as e:
            self.close()
            raise map_transport_error(e) from e

    def read(self) -> StreamTuple:
        if self._chunks is None:
            raise TransportError("tuple stream is not open")
        while True:
            obj = self._decoder.next()
            if obj is not None:
                return StreamTuple(obj)
            try:
                chunk = next(self._chunks, None)
            except Exception as e:
                raise map_transport_error(e) from e
            if chunk is None:
                raise TransportError(
                    f"tuple stream ended before EOF (pending={self._decoder.pending()[:200]!r})"
                )
            self._decoder.feed(chunk)

    def close(self) -> None:
        cm, self._cm = self._cm, None
        self._chunks = None
        if cm is not None:
            cm.__exit__(None, None, None)
            logger.debug(f"Closed tuple stream {self._url}")


class AsyncSolrTupleStream:
    """asyncio cursor over ``POST /{collection}/stream``."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        url: str,
        expr: str,
        params: Optional[Mapping[str, Any]] = None,
    ):
        self._http = http
        self._url = url
        self._expr = expr
        self._params = _stream_params(expr, params)
        self._cm = None
        self._chunks = None
        self._decoder = ResultSetDecoder()

    @property
    def expr(self) -> str:
        return self._expr

    async def open(self) -> None:
        if self._cm is not None:
            return
        logger.debug(f"Opening async tuple stream {self._url} expr={self._expr}")
        try:
            self._cm = self._http.stream("POST", self._url, data=self._params)
            response = await self._cm.__aenter__()
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            self._chunks = response.aiter_text()
        except Exception as e:
            await self.close()
            raise map_transport_error(e) from e

    async def read(self) -> StreamTuple:
        if self._chunks is None:
            raise TransportError("tuple stream is not open")
        while True:
            obj = self._decoder.next()
            if obj is not None:
                return StreamTuple(obj)
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                raise TransportError(
                    f"tuple stream ended before EOF (pending={self._decoder.pending()[:200]!r})"
                ) from None
            except Exception as e:
                raise map_transport_error(e) from e
            self._decoder.feed(chunk)

    async def close(self) -> None:
        cm, self._cm = self._cm, None
        self._chunks = None
        if cm is not None:
            await cm.__aexit__(None, None, None)
            logger.debug(f"Closed async tuple stream {self._url}")
