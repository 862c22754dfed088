"""Tests for the initial bulk load over HTTP (httpx mock transport)."""

import httpx
import pytest

from mapsync.comms.loader import bulk_features, load_initial

URL = "http://maps.test/api/getMaps"
PACKET = {"type": "bulkAdd", "data": [{"id": 1, "geometry": {"type": "Point", "coordinates": [0, 0]}}]}


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.unit
class TestLoadInitial:

    def test_success(self):
        """A 200 response yields the decoded packet."""
        client = _client(lambda request: httpx.Response(200, json=PACKET))
        assert load_initial(URL, client=client) == PACKET

    def test_request_is_get_to_url(self):
        """The loader issues a GET to the configured URL."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=PACKET)

        load_initial(URL, client=_client(handler))
        assert seen[0].method == "GET"
        assert str(seen[0].url) == URL

    def test_non_2xx_yields_none(self, log_messages):
        """Error statuses yield None."""
        client = _client(lambda request: httpx.Response(503))
        assert load_initial(URL, client=client) is None
        assert any(level == "ERROR" for level, _ in log_messages)

    def test_network_error_yields_none(self):
        """Transport errors yield None."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert load_initial(URL, client=_client(handler)) is None

    def test_non_json_yields_none(self):
        """A non-JSON body yields None."""
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        assert load_initial(URL, client=client) is None


@pytest.mark.unit
class TestBulkFeatures:

    def test_bulk_packet(self):
        """A bulkAdd packet yields its feature list."""
        assert bulk_features(PACKET) == PACKET["data"]

    def test_none(self):
        """No packet yields None."""
        assert bulk_features(None) is None

    def test_wrong_type(self):
        """A packet of another type yields None."""
        assert bulk_features({"type": "add", "data": []}) is None

    def test_non_array_data(self):
        """bulkAdd with non-array data yields None."""
        assert bulk_features({"type": "bulkAdd", "data": {}}) is None
