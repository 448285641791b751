import httpx
import pytest

from fieldroute.errors import ProviderUnavailable
from fieldroute.services.routing.osrm_client import OSRMClient, decode_polyline
from fieldroute.services.routing.retry import RetryPolicy


def _client(handler, sleeps=None):
    policy = RetryPolicy(sleep=(sleeps.append if sleeps is not None else lambda _: None))
    return OSRMClient(
        base_url="http://osrm.test",
        profile="driving",
        retry_policy=policy,
        transport=httpx.MockTransport(handler),
    )


def _table_payload(size):
    return {
        "code": "Ok",
        "distances": [[0.0 if i == j else 1000.0 for j in range(size)] for i in range(size)],
        "durations": [[0.0 if i == j else 60.0 for j in range(size)] for i in range(size)],
    }


def test_table_sends_lon_lat_pairs_and_annotations():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["annotations"] = request.url.params.get("annotations")
        return httpx.Response(200, json=_table_payload(2))

    data = _client(handler).table([(35.5, -97.5), (35.6, -97.4)])

    assert seen["path"] == "/table/v1/driving/-97.5,35.5;-97.4,35.6"
    assert seen["annotations"] == "distance,duration"
    assert data["distances"][0][1] == 1000.0


def test_table_retries_after_rate_limit():
    sleeps = []
    responses = [httpx.Response(429), httpx.Response(200, json=_table_payload(2))]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    data = _client(handler, sleeps).table([(35.5, -97.5), (35.6, -97.4)])

    assert data["code"] == "Ok"
    assert sleeps == [2.0]


def test_table_non_ok_code_exhausts_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"code": "InvalidQuery", "message": "bad coordinates"})

    with pytest.raises(ProviderUnavailable, match="bad coordinates"):
        _client(handler).table([(35.5, -97.5), (35.6, -97.4)])

    assert len(calls) == 3


def test_table_network_error_becomes_provider_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        _client(handler).table([(35.5, -97.5), (35.6, -97.4)])


def test_table_fallback_used_after_server_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    assert _client(handler).table([(35.5, -97.5)], fallback=lambda: None) is None


def test_table_rejects_truncated_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"code": "Ok", "distances": [[0.0]], "durations": [[0.0]]})

    with pytest.raises(ProviderUnavailable):
        _client(handler).table([(35.5, -97.5), (35.6, -97.4)])


def test_route_requests_polyline_geometry():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["geometries"] = request.url.params.get("geometries")
        return httpx.Response(200, json={"code": "Ok", "routes": [{"geometry": "_p~iF~ps|U_ulLnnqC"}]})

    data = _client(handler).route([(35.5, -97.5), (35.6, -97.4)])

    assert seen["path"].startswith("/route/v1/driving/")
    assert seen["geometries"] == "polyline"
    assert data["routes"][0]["geometry"] == "_p~iF~ps|U_ulLnnqC"


def test_route_requires_two_waypoints():
    with pytest.raises(ValueError):
        _client(lambda request: httpx.Response(200)).route([(35.5, -97.5)])


def test_decode_polyline():
    points = decode_polyline("_p~iF~ps|U_ulLnnqC_mqNvxq`@")

    assert points == [
        pytest.approx((38.5, -120.2)),
        pytest.approx((40.7, -120.95)),
        pytest.approx((43.252, -126.453)),
    ]
