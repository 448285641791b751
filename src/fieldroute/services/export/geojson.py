"""GeoJSON export of route plans for map layers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shapely.geometry import LineString, MultiPoint, Point, mapping

from ...models.domain import Coordinate
from ..routing.models import HOME_BASE_LABEL, DailyRoute, OptimizationResult

# ~500 m around the outermost stops of a day
AREA_BUFFER_DEGREES = 0.005


def day_color(index: int) -> str:
    """Distinct colour per day, cycling through a fixed palette."""
    colors = [
        "#02d8e0", "#e0003e", "#38e000", "#0000c1", "#e0e005",
        "#611cc7", "#e0af00", "#13aae0", "#a4d819", "#00e0bb",
        "#e000a2", "#e000e0", "#09e0e0", "#e0002f", "#22e000",
        "#15dde0", "#e00017", "#08e000", "#3100e0", "#e0bb0b",
    ]
    return colors[index % len(colors)]


def _feature(geometry: Any, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "Feature", "geometry": mapping(geometry), "properties": properties}


def _route_line(route: DailyRoute, home: Coordinate, geometry: Optional[Sequence[tuple[float, float]]]) -> LineString:
    if geometry and len(geometry) >= 2:
        path = geometry
    else:
        path = [home.as_tuple(), *(stop.coordinate.as_tuple() for stop in route.stops), home.as_tuple()]
    # GeoJSON is (lon, lat)
    return LineString([(lon, lat) for lat, lon in path])


def _day_area(route: DailyRoute):
    """Buffered convex hull around a day's stops, or ``None`` with fewer than three stops."""
    if len(route.stops) < 3:
        return None
    hull = MultiPoint([(stop.longitude, stop.latitude) for stop in route.stops]).convex_hull
    if hull.is_empty or hull.geom_type != "Polygon":
        return None
    return hull.buffer(AREA_BUFFER_DEGREES)


def result_to_geojson(
    result: OptimizationResult,
    home: Coordinate,
    geometries: Optional[Mapping[int, Sequence[tuple[float, float]]]] = None,
    include_areas: bool = False,
) -> Dict[str, Any]:
    """Build a FeatureCollection with one line per day and one point per stop.

    ``geometries`` maps a day number to its road geometry as (lat, lon) points;
    days without one are drawn as straight legs home -> stops -> home.
    """
    geometries = geometries or {}
    features: List[Dict[str, Any]] = [
        _feature(Point(home.longitude, home.latitude), {"kind": "home", "name": HOME_BASE_LABEL})
    ]

    for position, route in enumerate(result.routes):
        color = day_color(position)
        features.append(
            _feature(
                _route_line(route, home, geometries.get(route.day)),
                {
                    "kind": "route",
                    "day": route.day,
                    "color": color,
                    "stops": len(route.stops),
                    "totalMiles": round(route.total_miles, 2),
                    "totalTime": route.total_time,
                    "startTime": route.start_time,
                    "endTime": route.end_time,
                    "roadGeometry": route.day in geometries,
                },
            )
        )
        for order, (stop, segment) in enumerate(zip(route.stops, route.segments), start=1):
            features.append(
                _feature(
                    Point(stop.longitude, stop.latitude),
                    {
                        "kind": "stop",
                        "day": route.day,
                        "order": order,
                        "name": stop.name,
                        "color": color,
                        "arrivalTime": segment.arrival_time,
                        "departureTime": segment.departure_time,
                        "visitDuration": stop.visit_duration,
                    },
                )
            )
        if include_areas:
            area = _day_area(route)
            if area is not None:
                features.append(_feature(area, {"kind": "area", "day": route.day, "color": color}))

    return {"type": "FeatureCollection", "features": features}


def save_geojson(collection: Dict[str, Any], output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(collection, f, indent=2, ensure_ascii=False)
