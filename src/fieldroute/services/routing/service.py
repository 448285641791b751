"""Routing orchestration service."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Coordinate, Facility, Stop, StopArena
from .daylight import SunsetStatus, sunset_status
from .distance_provider import DistanceProvider
from .editor import bulk_move_stops, move_stop, remove_stop
from .models import DailyRoute, DistanceMatrix, OptimizationConstraints, OptimizationResult
from .sequence_solver import optimize_day_assignments
from .solver import optimize_routes
from .timeline import recalculate_route_times

logger = logging.getLogger(__name__)


def _prepare(
    facilities: Sequence[Facility],
    home: Coordinate | None,
    default_visit_duration: Optional[int],
    provider: DistanceProvider | None,
) -> tuple[StopArena, DistanceMatrix]:
    """Validate inputs, build the run's arena, then fetch one matrix for it."""
    arena = StopArena.from_facilities(
        home,
        facilities,
        default_visit_duration if default_visit_duration is not None else settings.default_visit_duration_minutes,
    )
    provider = provider or DistanceProvider()
    matrix = provider.get_matrix(arena.coordinates())
    if matrix.degraded:
        logger.warning("Distance matrix is partly approximated; routes may be less accurate")
    return arena, matrix


def plan_routes(
    facilities: Sequence[Facility],
    home: Coordinate | None,
    constraints: OptimizationConstraints | None = None,
    *,
    provider: DistanceProvider | None = None,
) -> OptimizationResult:
    """Plan multi-day routes for the active ``facilities`` starting from ``home``."""
    constraints = constraints or OptimizationConstraints()
    arena, matrix = _prepare(facilities, home, constraints.default_visit_duration, provider)
    logger.info(f"Optimizing routes for {len(arena)} facilities")
    return optimize_routes(arena, matrix, constraints)


def reassign_stop(
    result: OptimizationResult,
    stop_index: int,
    from_day: int,
    to_day: int,
    *,
    facilities: Sequence[Facility],
    home: Coordinate | None,
    start_time: Optional[str] = None,
    default_visit_duration: Optional[int] = None,
    provider: DistanceProvider | None = None,
) -> OptimizationResult:
    arena, matrix = _prepare(facilities, home, default_visit_duration, provider)
    return move_stop(result, stop_index, from_day, to_day, arena=arena, matrix=matrix, start_time=start_time)


def bulk_reassign_stops(
    result: OptimizationResult,
    stop_indices: Sequence[int],
    to_day: int,
    *,
    facilities: Sequence[Facility],
    home: Coordinate | None,
    start_time: Optional[str] = None,
    default_visit_duration: Optional[int] = None,
    provider: DistanceProvider | None = None,
) -> OptimizationResult:
    if not stop_indices:
        return result
    arena, matrix = _prepare(facilities, home, default_visit_duration, provider)
    return bulk_move_stops(result, stop_indices, to_day, arena=arena, matrix=matrix, start_time=start_time)


def remove_stop_from_route(
    result: OptimizationResult,
    stop_index: int,
    day: int,
    *,
    facilities: Sequence[Facility],
    home: Coordinate | None,
    start_time: Optional[str] = None,
    default_visit_duration: Optional[int] = None,
    provider: DistanceProvider | None = None,
) -> OptimizationResult:
    arena, matrix = _prepare(facilities, home, default_visit_duration, provider)
    return remove_stop(result, stop_index, day, arena=arena, matrix=matrix, start_time=start_time)


def resequence_assigned_days(
    assignments: Sequence[Sequence[str]],
    *,
    facilities: Sequence[Facility],
    home: Coordinate | None,
    start_time: Optional[str] = None,
    default_visit_duration: Optional[int] = None,
    provider: DistanceProvider | None = None,
) -> OptimizationResult:
    """Keep the caller's day assignments and only re-order and re-time each day."""
    arena, matrix = _prepare(facilities, home, default_visit_duration, provider)
    return optimize_day_assignments(arena, matrix, assignments, start_time or settings.default_start_time)


def refresh_route_times(
    result: OptimizationResult,
    facilities: Sequence[Facility],
    start_time: Optional[str] = None,
    default_visit_duration: Optional[int] = None,
) -> OptimizationResult:
    """Re-time every day from current visit durations without re-ordering or network calls.

    Stops are matched to ``facilities`` by id, then by name; unmatched stops keep
    their previous duration.
    """
    default_visit = (
        default_visit_duration if default_visit_duration is not None else settings.default_visit_duration_minutes
    )
    by_id = {facility.facility_id: facility for facility in facilities if facility.facility_id}
    by_name: dict[str, Facility] = {}
    for facility in facilities:
        by_name.setdefault(facility.name, facility)

    def current(stop: Stop) -> Stop:
        facility = (by_id.get(stop.facility_id) if stop.facility_id else None) or by_name.get(stop.name)
        if facility is None:
            return stop
        visit = facility.visit_duration_minutes or default_visit
        return stop if visit == stop.visit_duration else replace(stop, visit_duration=int(visit))

    routes: list[DailyRoute] = [
        recalculate_route_times(route, start_time=start_time, stops=[current(stop) for stop in route.stops])
        for route in result.routes
    ]
    return OptimizationResult.from_routes(routes)


def route_geometry(
    route: DailyRoute,
    home: Coordinate,
    provider: DistanceProvider | None = None,
) -> list[tuple[float, float]] | None:
    """Road geometry for one day (home -> stops -> home), or ``None`` if unavailable."""
    provider = provider or DistanceProvider()
    waypoints = [home, *(stop.coordinate for stop in route.stops), home]
    return provider.get_route_geometry(waypoints)


def sunset_report(
    result: OptimizationResult,
    sunset_offset_minutes: int = 0,
    on_date: Optional[date] = None,
) -> dict[int, SunsetStatus]:
    """Daylight status of each day's last departure, keyed by day number."""
    return {
        route.day: sunset_status(route, sunset_offset_minutes, on_date=on_date)
        for route in result.routes
        if route.stops
    }
