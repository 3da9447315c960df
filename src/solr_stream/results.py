"""
Per-message write outcomes.

A flow returns exactly one WriteResult per input message, in input order.
``status`` is 0 on success; any other value is a failure code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

P = TypeVar("P")

STATUS_OK = 0
STATUS_TRANSPORT_ERROR = -1  # no usable answer from Solr (network, timeout)
STATUS_DOCUMENT_ERROR = 400  # single document rejected by a tolerant update chain


@dataclass(frozen=True, eq=False)
class WriteResult(Generic[P]):
    status: int
    pass_through: Optional[P] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK
