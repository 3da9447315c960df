"""
Write-intent messages for the Solr write connector.

Four immutable variants make up IncomingMessage. Every variant carries an
opaque ``pass_through`` value that the connector hands back untouched with the
write result (e.g. a Kafka offset to commit once the write is durable).
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, Iterable, Mapping, Optional, TypeVar, Union

from .errors import ConfigurationError

D = TypeVar("D")
P = TypeVar("P")


def _require_text(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{name} must be a non-empty string, got {value!r}")


@dataclass(frozen=True, eq=False)
class IncomingUpsertMessage(Generic[D, P]):
    """Add or overwrite one document."""

    document: D
    pass_through: Optional[P] = None

    def __post_init__(self):
        if self.document is None:
            raise ConfigurationError("upsert requires a document")


@dataclass(frozen=True, eq=False)
class IncomingDeleteByIdsMessage(Generic[D, P]):
    """Delete documents by unique key. An empty id list is rejected."""

    ids: tuple[str, ...]
    pass_through: Optional[P] = None

    def __post_init__(self):
        if isinstance(self.ids, str):
            object.__setattr__(self, "ids", (self.ids,))
        else:
            object.__setattr__(self, "ids", tuple(self.ids))
        if not self.ids:
            raise ConfigurationError("delete by ids requires at least one id")
        for i in self.ids:
            _require_text("id", i)


@dataclass(frozen=True, eq=False)
class IncomingDeleteByQueryMessage(Generic[D, P]):
    """Delete every document matching a Solr query."""

    query: str
    pass_through: Optional[P] = None

    def __post_init__(self):
        _require_text("query", self.query)


@dataclass(frozen=True, eq=False)
class IncomingAtomicUpdateMessage(Generic[D, P]):
    """
    Partial update of one document.

    ``updates`` maps field name -> {operation: value}, e.g.
    ``{"comment": {"set": "new text"}, "views": {"inc": 1}}``. Operation names
    are forwarded to Solr as-is.
    """

    id_field: str
    id_value: str
    updates: Mapping[str, Mapping[str, Any]]
    routing_value: Optional[str] = None
    pass_through: Optional[P] = None

    def __post_init__(self):
        _require_text("id_field", self.id_field)
        _require_text("id_value", self.id_value)
        if self.routing_value is not None:
            _require_text("routing_value", self.routing_value)
        if not self.updates:
            raise ConfigurationError("atomic update requires at least one field update")
        frozen = {}
        for fname, ops in self.updates.items():
            _require_text("field name", fname)
            if not isinstance(ops, Mapping) or not ops:
                raise ConfigurationError(
                    f"updates for field {fname!r} must be a non-empty mapping of operation -> value"
                )
            frozen[fname] = MappingProxyType(dict(ops))
        object.__setattr__(self, "updates", MappingProxyType(frozen))


IncomingMessage = Union[
    IncomingUpsertMessage[D, P],
    IncomingDeleteByIdsMessage[D, P],
    IncomingDeleteByQueryMessage[D, P],
    IncomingAtomicUpdateMessage[D, P],
]

MESSAGE_TYPES = (
    IncomingUpsertMessage,
    IncomingDeleteByIdsMessage,
    IncomingDeleteByQueryMessage,
    IncomingAtomicUpdateMessage,
)


# ---------------------------
# Construction helpers
# ---------------------------


def upsert(document: D, pass_through: Optional[P] = None) -> IncomingUpsertMessage[D, P]:
    return IncomingUpsertMessage(document, pass_through)


def delete_by_ids(
    ids: Union[str, Iterable[str]], pass_through: Optional[P] = None
) -> IncomingDeleteByIdsMessage[Any, P]:
    return IncomingDeleteByIdsMessage(ids, pass_through)


def delete_by_query(query: str, pass_through: Optional[P] = None) -> IncomingDeleteByQueryMessage[Any, P]:
    return IncomingDeleteByQueryMessage(query, pass_through)


def atomic_update(
    id_field: str,
    id_value: str,
    updates: Mapping[str, Mapping[str, Any]],
    routing_value: Optional[str] = None,
    pass_through: Optional[P] = None,
) -> IncomingAtomicUpdateMessage[Any, P]:
    return IncomingAtomicUpdateMessage(id_field, id_value, updates, routing_value, pass_through)
