from __future__ import annotations

from typing import Any, List, Mapping, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from .config import SolrSettings
from .errors import map_transport_error
from .request import UpdateRequest
from .tuples import SolrTupleStream


class DocumentError(BaseModel):
    """One entry of a TolerantUpdateProcessor ``errors`` list."""

    type: str
    id: str
    message: Optional[str] = None


class UpdateResponse(BaseModel):
    status: int = 0
    qtime: Optional[int] = None
    errors: List[DocumentError] = Field(default_factory=list)

    @classmethod
    def from_json(cls, body: Mapping[str, Any]) -> "UpdateResponse":
        header = body.get("responseHeader") or {}
        errors = body.get("errors") or header.get("errors") or []
        return cls(
            status=int(header.get("status", 0)),
            qtime=header.get("QTime"),
            errors=[
                DocumentError(type=str(e.get("type", "")), id=str(e.get("id", "")), message=e.get("message"))
                for e in errors
                if isinstance(e, Mapping)
            ],
        )


def _auth(username: Optional[str], password: Optional[str]):
    if username is not None:
        return httpx.BasicAuth(username, password or "")
    return None


class SolrClient:
    """
    Thin blocking Solr client over httpx.

    Only the operations the connector needs: batched update requests,
    explicit commit, ping, and streaming expressions.

    Usage:
        with SolrClient("http://localhost:8983/solr") as solr:
            solr.update("books", UpdateRequest().add({"id": "1"}))
            solr.commit("books")
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        id_field: str = "id",
        router_field: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.id_field = id_field
        self.router_field = router_field
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            auth=_auth(username, password),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: SolrSettings, **kwargs) -> "SolrClient":
        return cls(
            settings.base_url,
            timeout=settings.timeout,
            id_field=settings.id_field,
            router_field=settings.router_field,
            username=settings.username,
            password=settings.password,
            **kwargs,
        )

    def __enter__(self) -> "SolrClient":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        self._http.close()

    # ---------- writes ----------

    def update(self, collection: str, request: UpdateRequest) -> UpdateResponse:
        logger.debug(f"POST /{collection}/update commands={len(request)} params={request.params()}")
        try:
            r = self._http.post(
                f"/{collection}/update",
                params=request.params(),
                content=request.to_json(),
                headers={"Content-Type": "application/json"},
            )
            r.raise_for_status()
            return UpdateResponse.from_json(r.json())
        except Exception as e:
            raise map_transport_error(e) from e

    def commit(self, collection: str) -> UpdateResponse:
        return self.update(collection, UpdateRequest().commit())

    # ---------- reads ----------

    def ping(self, collection: str) -> bool:
        try:
            r = self._http.get(f"/{collection}/admin/ping", params={"wt": "json"})
            r.raise_for_status()
            return r.json().get("status") == "OK"
        except Exception as e:
            raise map_transport_error(e) from e

    def stream(
        self, collection: str, expr: str, params: Optional[Mapping[str, Any]] = None
    ) -> SolrTupleStream:
        """Cursor for a streaming expression; not opened until first read."""
        return SolrTupleStream(self._http, f"/{collection}/stream", expr, params)
