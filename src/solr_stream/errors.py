"""
Custom exceptions for the Solr stream connector.

Configuration problems fail fast; transport problems are mapped from httpx
so callers can tell retryable network trouble from a Solr-side rejection.
"""

from __future__ import annotations

from typing import Any, Sequence


class SolrConnectorError(Exception):
    """Base error for the connector."""

    pass


class ConfigurationError(SolrConnectorError, ValueError):
    """Malformed message or unsupported document shape. Raised before any I/O."""

    pass


class TransportError(SolrConnectorError):
    """Network failure, timeout or unreadable response."""

    pass


class SolrServerError(SolrConnectorError):
    """Solr answered but rejected the request."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Solr error {status}: {message}")
        self.status = status
        self.message = message


class StreamError(SolrConnectorError):
    """A streaming expression reported an EXCEPTION tuple."""

    pass


class WriteFailedError(SolrConnectorError):
    """At least one message of a sink batch was not written."""

    def __init__(self, results: Sequence[Any]):
        self.results = list(results)
        failed = [r for r in self.results if r.status != 0]
        first = failed[0] if failed else None
        detail = f": {first.error}" if first is not None and first.error else ""
        super().__init__(f"{len(failed)} of {len(self.results)} messages failed{detail}")


def _solr_error_body(response: Any) -> tuple[int, str]:
    """Pull (status, msg) out of a Solr JSON error body, falling back to HTTP."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        return status, response.text[:500]
    if isinstance(body, dict):
        err = body.get("error") or {}
        header = body.get("responseHeader") or {}
        code = err.get("code") or header.get("status") or status
        return int(code), str(err.get("msg") or err.get("trace") or response.reason_phrase)
    return status, response.text[:500]


def map_transport_error(e: Exception) -> SolrConnectorError:
    import httpx

    if isinstance(e, SolrConnectorError):
        return e
    if isinstance(e, httpx.HTTPStatusError):
        status, msg = _solr_error_body(e.response)
        return SolrServerError(status, msg)
    if isinstance(e, httpx.RequestError):
        return TransportError(f"{type(e).__name__}: {e}")
    if isinstance(e, ValueError):
        # JSON decoding of a garbled body
        return TransportError(f"invalid response: {e}")
    return SolrConnectorError(str(e))
