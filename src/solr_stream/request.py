"""
Translation of write-intent messages into one Solr JSON update request.

Solr's JSON update format allows repeated command keys in a single object
(``{"add": {...}, "delete": {...}, "add": {...}}``), which keeps every
message as its own entry in order. Python dicts cannot hold duplicate keys,
so the body is serialised command by command.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID
from typing import Any, Callable, Mapping, Optional, Sequence

from .errors import ConfigurationError
from .messages import (
    IncomingAtomicUpdateMessage,
    IncomingDeleteByIdsMessage,
    IncomingDeleteByQueryMessage,
    IncomingUpsertMessage,
)
from .settings import NO_AUTO_COMMIT, UpdateSettings

DocumentBinder = Callable[[Any], Mapping[str, Any]]

# Command types used by Solr's TolerantUpdateProcessor in its "errors" list
CMD_ADD = "ADD"
CMD_DELETE_ID = "DELID"
CMD_DELETE_QUERY = "DELQ"


# ---------------------------
# Document binders
# ---------------------------


def bind_document(doc: Any) -> Mapping[str, Any]:
    """Plain mapping documents, passed through as-is."""
    if not isinstance(doc, Mapping):
        raise ConfigurationError(f"expected a mapping document, got {type(doc).__name__}")
    return doc


def model_binder(model_cls: type) -> DocumentBinder:
    """Bind pydantic models, using field aliases as Solr field names."""

    def _bind(doc: Any) -> Mapping[str, Any]:
        if not isinstance(doc, model_cls):
            raise ConfigurationError(
                f"expected {model_cls.__name__} document, got {type(doc).__name__}"
            )
        return doc.model_dump(mode="json", by_alias=True, exclude_none=True)

    return _bind


def typed_binder(binder: Callable[[Any], Mapping[str, Any]]) -> DocumentBinder:
    """Bind arbitrary objects through a caller supplied conversion function."""

    def _bind(doc: Any) -> Mapping[str, Any]:
        out = binder(doc)
        if not isinstance(out, Mapping):
            raise ConfigurationError(
                f"document binder returned {type(out).__name__}, expected a mapping"
            )
        return out

    return _bind


# ---------------------------
# Request
# ---------------------------


def _json_default(value: Any) -> Any:
    """Field values json cannot encode natively; anything else is rejected."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.isoformat() + "Z"
    if isinstance(value, date):
        return value.isoformat() + "T00:00:00Z"
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise ConfigurationError(f"unsupported field value of type {type(value).__name__}")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


class UpdateRequest:
    """Ordered list of Solr update commands plus request parameters."""

    def __init__(self, commit_within: int = NO_AUTO_COMMIT):
        self.commit_within = commit_within
        self.commands: list[tuple[str, Any]] = []
        self._encoded: list[str] = []

    def __len__(self) -> int:
        return len(self.commands)

    def _append(self, command: str, body: Any) -> "UpdateRequest":
        # encoded here so a bad field value raises while the batch is built
        self._encoded.append(f"{json.dumps(command)}: {_dumps(body)}")
        self.commands.append((command, body))
        return self

    def add(self, doc: Mapping[str, Any]) -> "UpdateRequest":
        return self._append("add", {"doc": dict(doc)})

    def delete_by_ids(self, ids: Sequence[str]) -> "UpdateRequest":
        return self._append("delete", list(ids))

    def delete_by_query(self, query: str) -> "UpdateRequest":
        return self._append("delete", {"query": query})

    def commit(self) -> "UpdateRequest":
        return self._append("commit", {})

    def params(self) -> dict[str, Any]:
        p: dict[str, Any] = {"wt": "json"}
        if self.commit_within != NO_AUTO_COMMIT:
            p["commitWithin"] = self.commit_within
        return p

    def to_json(self) -> str:
        return "{" + ", ".join(self._encoded) + "}"


@dataclass(frozen=True)
class CommandKey:
    """How a tolerant-update error entry points back to a message."""

    type: str
    ids: tuple[str, ...]


def build_update_request(
    batch: Sequence[Any],
    settings: UpdateSettings,
    binder: DocumentBinder = bind_document,
    *,
    id_field: str = "id",
    router_field: Optional[str] = None,
) -> tuple[UpdateRequest, list[CommandKey]]:
    """
    Build one request for the whole batch.

    Returns the request and, per message, the key used to match per-document
    errors. Raises ConfigurationError for anything that is not a supported
    message or whose document does not fit ``binder``.
    """
    req = UpdateRequest(commit_within=settings.commit_within)
    keys: list[CommandKey] = []

    for msg in batch:
        if isinstance(msg, IncomingUpsertMessage):
            doc = binder(msg.document)
            req.add(doc)
            uid = doc.get(id_field)
            keys.append(CommandKey(CMD_ADD, (str(uid),) if uid is not None else ()))
        elif isinstance(msg, IncomingDeleteByIdsMessage):
            req.delete_by_ids(msg.ids)
            keys.append(CommandKey(CMD_DELETE_ID, msg.ids))
        elif isinstance(msg, IncomingDeleteByQueryMessage):
            req.delete_by_query(msg.query)
            keys.append(CommandKey(CMD_DELETE_QUERY, (msg.query,)))
        elif isinstance(msg, IncomingAtomicUpdateMessage):
            req.add(atomic_update_document(msg, router_field))
            keys.append(CommandKey(CMD_ADD, (msg.id_value,)))
        else:
            raise ConfigurationError(f"unsupported message type: {type(msg).__name__}")

    return req, keys


def atomic_update_document(
    msg: IncomingAtomicUpdateMessage, router_field: Optional[str] = None
) -> dict[str, Any]:
    doc: dict[str, Any] = {msg.id_field: msg.id_value}
    if msg.routing_value is not None and router_field and router_field != msg.id_field:
        doc[router_field] = msg.routing_value
    for fname, ops in msg.updates.items():
        doc[fname] = dict(ops)
    return doc
