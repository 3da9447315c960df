from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable, List, Optional

from loguru import logger

from .flow import SolrFlow
from .results import WriteResult

ResultsCallback = Callable[[List[WriteResult]], None]


@dataclass(frozen=True)
class BatchConfig:
    """Size/time flush thresholds."""

    max_rows: int = 500  # flush after N buffered messages
    max_ms: int = 1000  # or once the oldest buffered message is this old

    def __post_init__(self):
        if self.max_rows <= 0:
            raise ValueError("max_rows must be > 0")
        if self.max_ms < 0:
            raise ValueError("max_ms must be >= 0")


class BatchProcessor:
    """
    Small sync batcher in front of a SolrFlow.

    Messages are buffered and written as one batch when ``max_rows`` is
    reached or the window is older than ``max_ms`` (checked on add). Each
    batch's results go to ``on_results``, in message order, which is where
    offsets get committed.

    Usage:
        flow = SolrFlow.documents("books", UpdateSettings(commit_within=5), solr)
        with BatchProcessor(flow, BatchConfig(max_rows=100), on_results=commit_offsets) as bp:
            for record in consumer:
                bp.add(upsert(record.value, pass_through=record.offset))
        # final flush on exit
    """

    def __init__(
        self,
        flow: SolrFlow,
        config: Optional[BatchConfig] = None,
        on_results: Optional[ResultsCallback] = None,
    ):
        self._flow = flow
        self._cfg = config or BatchConfig()
        self._on_results = on_results
        self._pending: List[Any] = []
        self._t0 = monotonic()
        self.batches = 0
        self.written = 0

    def __enter__(self) -> "BatchProcessor":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --------------------------- public API

    @property
    def pending(self) -> int:
        return len(self._pending)

    def add(self, message: Any) -> None:
        if not self._pending:
            self._t0 = monotonic()
        self._pending.append(message)
        self._maybe_flush()

    def flush(self) -> List[WriteResult]:
        """Write buffered messages as one batch. Returns its results."""
        if not self._pending:
            return []
        batch, self._pending = self._pending, []
        self._t0 = monotonic()

        results = self._flow.process(batch)
        self.batches += 1
        self.written += sum(1 for r in results if r.ok)
        if self._on_results is not None:
            self._on_results(results)
        return results

    def close(self) -> List[WriteResult]:
        """Flush remaining messages; safe to call multiple times."""
        results = self.flush()
        logger.debug(f"BatchProcessor closed: batches={self.batches} written={self.written}")
        return results

    # --------------------------- internals

    def _maybe_flush(self) -> None:
        if len(self._pending) >= self._cfg.max_rows:
            self.flush()
            return
        elapsed_ms = (monotonic() - self._t0) * 1000.0
        if elapsed_ms >= self._cfg.max_ms:
            self.flush()
