"""Serializers for routing outputs."""

from __future__ import annotations

import csv
import io
from typing import Any

from ...models.domain import Stop
from ...schemas.routing import (
    DailyRouteModel,
    FacilityModel,
    OptimizationResultModel,
    SegmentModel,
)
from ..routing.models import DailyRoute, OptimizationResult, Segment


def _route_model(route: DailyRoute) -> DailyRouteModel:
    return DailyRouteModel(
        day=route.day,
        facilities=[
            FacilityModel(
                index=stop.index,
                name=stop.name,
                latitude=stop.latitude,
                longitude=stop.longitude,
                visit_duration=stop.visit_duration,
                facility_id=stop.facility_id,
            )
            for stop in route.stops
        ],
        sequence=list(route.sequence),
        segments=[
            SegmentModel(
                from_=segment.from_name,
                to=segment.to_name,
                distance=segment.distance,
                duration=segment.duration,
                arrival_time=segment.arrival_time,
                departure_time=segment.departure_time,
            )
            for segment in route.segments
        ],
        total_miles=route.total_miles,
        total_drive_time=route.total_drive_time,
        total_visit_time=route.total_visit_time,
        total_time=route.total_time,
        start_time=route.start_time,
        end_time=route.end_time,
        last_facility_departure_time=route.last_stop_departure_time,
    )


def optimization_result_to_json(result: OptimizationResult) -> dict:
    model = OptimizationResultModel(
        routes=[_route_model(route) for route in result.routes],
        total_days=result.total_days,
        total_miles=result.total_miles,
        total_facilities=result.total_facilities,
        total_drive_time=result.total_drive_time,
        total_visit_time=result.total_visit_time,
        total_time=result.total_time,
    )
    return model.model_dump(by_alias=True, exclude_none=True)


def optimization_result_from_json(payload: dict[str, Any]) -> OptimizationResult:
    """Rebuild a stored plan; raises ``pydantic.ValidationError`` on a malformed payload."""
    model = OptimizationResultModel.model_validate(payload)
    routes = []
    for route in model.routes:
        stops = tuple(
            Stop(
                index=facility.index,
                name=facility.name,
                latitude=facility.latitude,
                longitude=facility.longitude,
                visit_duration=facility.visit_duration,
                facility_id=facility.facility_id,
            )
            for facility in route.facilities
        )
        routes.append(
            DailyRoute(
                day=route.day,
                sequence=tuple(route.sequence),
                stops=stops,
                segments=tuple(
                    Segment(
                        from_name=segment.from_,
                        to_name=segment.to,
                        distance=segment.distance,
                        duration=segment.duration,
                        arrival_time=segment.arrival_time,
                        departure_time=segment.departure_time,
                    )
                    for segment in route.segments
                ),
                total_miles=route.total_miles,
                total_drive_time=route.total_drive_time,
                total_visit_time=route.total_visit_time,
                total_time=route.total_time,
                start_time=route.start_time,
                end_time=route.end_time,
                last_stop_departure_time=route.last_facility_departure_time,
            )
        )
    return OptimizationResult.from_routes(routes)


def summary_columns(result: OptimizationResult) -> dict[str, Any]:
    """Derived columns stored next to the plan for querying."""
    return {
        "total_days": result.total_days,
        "total_miles": round(result.total_miles, 2),
        "total_facilities": result.total_facilities,
    }


def optimization_result_to_csv(result: OptimizationResult) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "day",
        "leg",
        "from",
        "to",
        "distance_miles",
        "drive_minutes",
        "arrival_time",
        "departure_time",
        "day_total_miles",
        "day_total_minutes",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for route in result.routes:
        for leg, segment in enumerate(route.segments, start=1):
            writer.writerow(
                {
                    "day": route.day,
                    "leg": leg,
                    "from": segment.from_name,
                    "to": segment.to_name,
                    "distance_miles": f"{segment.distance:.2f}",
                    "drive_minutes": segment.duration,
                    "arrival_time": segment.arrival_time,
                    "departure_time": segment.departure_time,
                    "day_total_miles": f"{route.total_miles:.2f}",
                    "day_total_minutes": route.total_time,
                }
            )
    return buffer.getvalue()
