from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx
from loguru import logger

from .client import UpdateResponse, _auth
from .config import SolrSettings
from .errors import map_transport_error
from .request import UpdateRequest
from .tuples import AsyncSolrTupleStream


class AsyncSolrClient:
    """asyncio twin of SolrClient, backed by httpx.AsyncClient."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        id_field: str = "id",
        router_field: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.id_field = id_field
        self.router_field = router_field
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            auth=_auth(username, password),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: SolrSettings, **kwargs) -> "AsyncSolrClient":
        return cls(
            settings.base_url,
            timeout=settings.timeout,
            id_field=settings.id_field,
            router_field=settings.router_field,
            username=settings.username,
            password=settings.password,
            **kwargs,
        )

    async def __aenter__(self) -> "AsyncSolrClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ---------- writes ----------

    async def update(self, collection: str, request: UpdateRequest) -> UpdateResponse:
        logger.debug(f"POST /{collection}/update commands={len(request)} params={request.params()}")
        try:
            r = await self._http.post(
                f"/{collection}/update",
                params=request.params(),
                content=request.to_json(),
                headers={"Content-Type": "application/json"},
            )
            r.raise_for_status()
            return UpdateResponse.from_json(r.json())
        except Exception as e:
            raise map_transport_error(e) from e

    async def commit(self, collection: str) -> UpdateResponse:
        return await self.update(collection, UpdateRequest().commit())

    # ---------- reads ----------

    async def ping(self, collection: str) -> bool:
        try:
            r = await self._http.get(f"/{collection}/admin/ping", params={"wt": "json"})
            r.raise_for_status()
            return r.json().get("status") == "OK"
        except Exception as e:
            raise map_transport_error(e) from e

    def stream(
        self, collection: str, expr: str, params: Optional[Mapping[str, Any]] = None
    ) -> AsyncSolrTupleStream:
        return AsyncSolrTupleStream(self._http, f"/{collection}/stream", expr, params)
