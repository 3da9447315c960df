"""
Unit tests for error mapping.
"""

import httpx
import pytest

from solr_stream import (
    ConfigurationError,
    SolrConnectorError,
    SolrServerError,
    TransportError,
    WriteFailedError,
    WriteResult,
)
from solr_stream.errors import map_transport_error


def _status_error(status, **kwargs):
    request = httpx.Request("POST", "http://solr.test/solr/c/update")
    response = httpx.Response(status, request=request, **kwargs)
    return httpx.HTTPStatusError("error", request=request, response=response)


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(ConfigurationError, SolrConnectorError)


def test_maps_solr_error_body():
    e = map_transport_error(
        _status_error(400, json={"responseHeader": {"status": 400}, "error": {"code": 400, "msg": "undefined field foo"}})
    )
    assert isinstance(e, SolrServerError)
    assert e.status == 400
    assert e.message == "undefined field foo"


def test_maps_non_json_error_body():
    e = map_transport_error(_status_error(502, text="Bad Gateway"))
    assert isinstance(e, SolrServerError)
    assert e.status == 502
    assert "Bad Gateway" in e.message


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.RemoteProtocolError("peer closed"),
    ],
)
def test_maps_network_errors(exc):
    assert isinstance(map_transport_error(exc), TransportError)


def test_connector_errors_pass_through():
    err = TransportError("x")
    assert map_transport_error(err) is err


def test_write_failed_error_message():
    results = [WriteResult(0, 1), WriteResult(-1, 2, "down"), WriteResult(-1, 3, "down")]
    err = WriteFailedError(results)
    assert str(err) == "2 of 3 messages failed: down"
    assert err.results == results
