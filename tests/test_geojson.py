import json

from fieldroute.models.domain import Coordinate, Facility, StopArena
from fieldroute.services.export import day_color, result_to_geojson, save_geojson
from fieldroute.services.routing.distance_provider import haversine_matrix
from fieldroute.services.routing.sequence_solver import optimize_day_assignments

HOME = Coordinate(35.0, -97.0)


def _result():
    facilities = [
        Facility("North Yard", 35.10, -97.10, None, "F-1"),
        Facility("Creek Battery", 35.12, -97.05, None, "F-2"),
        Facility("Ridge Well", 35.05, -97.00, None, "F-3"),
        Facility("South Tank", 34.90, -96.90, None, "F-4"),
        Facility("Mill Pad", 34.88, -96.95, None, "F-5"),
    ]
    arena = StopArena.from_facilities(HOME, facilities, 30)
    matrix = haversine_matrix(arena.coordinates(), 1.3)
    return optimize_day_assignments(arena, matrix, [["F-1", "F-2", "F-3"], ["F-4", "F-5"]], "08:00")


def _kinds(collection):
    return [feature["properties"]["kind"] for feature in collection["features"]]


def test_feature_collection_layout():
    collection = result_to_geojson(_result(), HOME)

    assert collection["type"] == "FeatureCollection"
    assert _kinds(collection) == ["home", "route", "stop", "stop", "stop", "route", "stop", "stop"]
    home = collection["features"][0]
    assert tuple(home["geometry"]["coordinates"]) == (-97.0, 35.0)


def test_straight_route_line_starts_and_ends_at_home():
    result = _result()

    collection = result_to_geojson(result, HOME)

    line = collection["features"][1]
    coordinates = [tuple(point) for point in line["geometry"]["coordinates"]]
    assert line["geometry"]["type"] == "LineString"
    assert coordinates[0] == (-97.0, 35.0)
    assert coordinates[-1] == (-97.0, 35.0)
    assert len(coordinates) == len(result.routes[0].stops) + 2
    assert line["properties"]["roadGeometry"] is False
    assert line["properties"]["color"] == day_color(0)


def test_road_geometry_replaces_straight_legs():
    geometry = [(35.0, -97.0), (35.04, -97.06), (35.1, -97.1), (35.0, -97.0)]

    collection = result_to_geojson(_result(), HOME, geometries={1: geometry})

    line = collection["features"][1]
    assert [tuple(point) for point in line["geometry"]["coordinates"]] == [(lon, lat) for lat, lon in geometry]
    assert line["properties"]["roadGeometry"] is True


def test_stop_properties_carry_timeline():
    result = _result()

    collection = result_to_geojson(result, HOME)

    stops = [feature for feature in collection["features"] if feature["properties"]["kind"] == "stop"]
    first = stops[0]["properties"]
    assert first["day"] == 1
    assert first["order"] == 1
    assert first["name"] == result.routes[0].stops[0].name
    assert first["arrivalTime"] == result.routes[0].segments[0].arrival_time


def test_areas_only_for_days_with_three_stops():
    collection = result_to_geojson(_result(), HOME, include_areas=True)

    areas = [feature for feature in collection["features"] if feature["properties"]["kind"] == "area"]
    assert len(areas) == 1
    assert areas[0]["properties"]["day"] == 1
    assert areas[0]["geometry"]["type"] == "Polygon"


def test_day_color_cycles():
    assert day_color(0) == "#02d8e0"
    assert day_color(20) == day_color(0)
    assert day_color(1) != day_color(0)


def test_save_geojson(tmp_path):
    output = tmp_path / "maps" / "plan.geojson"

    save_geojson(result_to_geojson(_result(), HOME), output)

    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["type"] == "FeatureCollection"
    assert len(data["features"]) == 8
