import httpx
import pytest

from fieldroute.errors import ProviderUnavailable
from fieldroute.models.domain import Coordinate
from fieldroute.services.geospatial import haversine_miles
from fieldroute.services.routing.distance_provider import DistanceProvider, haversine_matrix
from fieldroute.services.routing.osrm_client import OSRMClient
from fieldroute.services.routing.retry import RetryPolicy


def _grid(count):
    return [Coordinate(35.0 + (i // 10) * 0.02, -97.0 + (i % 10) * 0.02) for i in range(count)]


def _coordinate_count(request: httpx.Request) -> int:
    return len(request.url.path.rsplit("/", 1)[-1].split(";"))


def _table_response(size, meters=1609.34, seconds=120.0):
    return httpx.Response(
        200,
        json={
            "code": "Ok",
            "distances": [[0.0 if i == j else meters * abs(i - j) for j in range(size)] for i in range(size)],
            "durations": [[0.0 if i == j else seconds * abs(i - j) for j in range(size)] for i in range(size)],
        },
    )


def _provider(handler, sleeps, max_locations=100):
    client = OSRMClient(
        base_url="http://osrm.test",
        retry_policy=RetryPolicy(sleep=sleeps.append),
        transport=httpx.MockTransport(handler),
    )
    return DistanceProvider(client, max_locations_per_request=max_locations, sleep=sleeps.append)


def test_single_request_converts_units():
    sleeps = []
    provider = _provider(lambda request: _table_response(_coordinate_count(request)), sleeps)

    matrix = provider.get_matrix(_grid(3))

    assert matrix.size == 3
    assert matrix.distance(0, 1) == pytest.approx(1.0)
    assert matrix.distance(0, 2) == pytest.approx(2.0)
    assert matrix.duration(0, 1) == 2
    assert matrix.duration(2, 0) == 4
    assert matrix.degraded is False
    assert sleeps == []


def test_single_request_failure_raises():
    sleeps = []
    provider = _provider(lambda request: httpx.Response(500), sleeps)

    with pytest.raises(ProviderUnavailable):
        provider.get_matrix(_grid(4))

    assert sleeps == [1.0, 1.0]


def test_empty_input_returns_empty_matrix():
    provider = _provider(lambda request: pytest.fail("no request expected"), [])

    assert provider.get_matrix([]).size == 0


def test_zero_and_missing_cells_are_filled_from_great_circle():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "code": "Ok",
                "distances": [[5.0, 0.0], [None, 0.0]],
                "durations": [[3.0, 0.0], [None, 0.0]],
            },
        )

    coordinates = _grid(2)
    matrix = _provider(handler, []).get_matrix(coordinates)

    expected = haversine_miles(*coordinates[0].as_tuple(), *coordinates[1].as_tuple()) * 1.3
    assert matrix.distance(0, 0) == 0.0
    assert matrix.duration(0, 0) == 0
    assert matrix.distance(0, 1) == pytest.approx(expected)
    assert matrix.distance(1, 0) == pytest.approx(expected)
    assert matrix.duration(0, 1) >= 1


def test_batched_matrix_covers_every_pair():
    sleeps = []
    sizes = []

    def handler(request):
        size = _coordinate_count(request)
        sizes.append(size)
        return _table_response(size)

    coordinates = _grid(150)
    matrix = _provider(handler, sleeps).get_matrix(coordinates)

    assert sizes == [100, 50]
    assert sleeps == [1.0]
    assert matrix.size == 150
    assert matrix.degraded is False
    for i in range(150):
        assert matrix.distance(i, i) == 0.0
        assert matrix.duration(i, i) == 0
        for j in range(150):
            if i != j:
                assert matrix.distance(i, j) > 0
                assert matrix.duration(i, j) > 0

    assert matrix.distance(10, 11) == pytest.approx(1.0)
    assert matrix.distance(100, 102) == pytest.approx(2.0)
    cross = haversine_miles(*coordinates[5].as_tuple(), *coordinates[120].as_tuple()) * 1.3
    assert matrix.distance(5, 120) == pytest.approx(cross)


def test_failed_batch_degrades_to_straight_line():
    sleeps = []

    def handler(request):
        size = _coordinate_count(request)
        if size == 50:
            return httpx.Response(502)
        return _table_response(size)

    coordinates = _grid(150)
    matrix = _provider(handler, sleeps).get_matrix(coordinates)

    assert matrix.degraded is True
    assert sleeps == [1.0, 1.0, 1.0]
    straight = haversine_miles(*coordinates[100].as_tuple(), *coordinates[101].as_tuple())
    assert matrix.distance(100, 101) == pytest.approx(straight)
    assert matrix.distance(0, 1) == pytest.approx(1.0)
    assert all(matrix.distance(i, j) > 0 for i in range(100, 150) for j in range(150) if i != j)


def test_haversine_matrix_is_symmetric_with_zero_diagonal():
    coordinates = _grid(5)
    matrix = haversine_matrix(coordinates, 1.3)

    for i in range(5):
        assert matrix.distance(i, i) == 0.0
        for j in range(5):
            assert matrix.distance(i, j) == pytest.approx(matrix.distance(j, i))
            if i != j:
                assert matrix.duration(i, j) >= 1
    assert matrix.coordinates[0] == coordinates[0].as_tuple()


def test_route_geometry_decodes_polyline():
    def handler(request):
        return httpx.Response(200, json={"code": "Ok", "routes": [{"geometry": "_p~iF~ps|U_ulLnnqC"}]})

    points = _provider(handler, []).get_route_geometry(_grid(2))

    assert points == [pytest.approx((38.5, -120.2)), pytest.approx((40.7, -120.95))]


def test_route_geometry_failure_returns_none():
    points = _provider(lambda request: httpx.Response(500), []).get_route_geometry(_grid(3))

    assert points is None


def test_rejects_tiny_batch_size():
    with pytest.raises(ValueError):
        DistanceProvider(OSRMClient(base_url="http://osrm.test"), max_locations_per_request=1)
