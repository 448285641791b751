"""Incremental edits of an existing plan: move, bulk-move and remove stops.

Every edit takes a snapshot ``OptimizationResult`` and returns a new one. Only
the days touched by the edit are re-ordered and re-timed; the others are carried
over with their stop indices mapped onto the current arena. Stops missing from
that arena are dropped wherever they are, so every day of the new result indexes
the same arena.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional, Sequence

from ...errors import StopNotFound, UnknownDay
from ...models.domain import HOME_INDEX, Stop, StopArena
from .models import DailyRoute, DistanceMatrix, OptimizationResult
from .timeline import build_day_route
from .tour import optimize_route_order

logger = logging.getLogger(__name__)


def _require_day(result: OptimizationResult, day: int) -> DailyRoute:
    route = result.route_for_day(day)
    if route is None:
        raise UnknownDay(f"Day {day} is not part of this plan ({result.total_days} days).")
    return route


def _take(stops: list[Stop], stop_index: int, day: int) -> Stop:
    for position, stop in enumerate(stops):
        if stop.index == stop_index:
            return stops.pop(position)
    raise StopNotFound(f"Stop {stop_index} is not on day {day}.")


def _reindex(
    route: DailyRoute,
    arena: StopArena,
    matrix: DistanceMatrix,
) -> Optional[DailyRoute]:
    """Map an untouched day onto ``arena`` indices, keeping its order.

    The timeline is kept as is unless inactive stops had to be dropped, in which
    case the remaining stops are re-timed in their existing order.
    """
    stops: list[Stop] = []
    for stop in route.stops:
        try:
            stops.append(replace(stop, index=arena.index_of(stop)))
        except StopNotFound:
            logger.warning(f"Facility '{stop.name}' is no longer active; dropping it from day {route.day}")
    if not stops:
        return None
    sequence = [stop.index for stop in stops]
    if len(stops) < len(route.stops):
        return build_day_route(arena, sequence, matrix, route.start_time, day=route.day)
    return replace(route, stops=tuple(stops), sequence=tuple(sequence))


def _reoptimize(
    route: DailyRoute,
    stops: Sequence[Stop],
    arena: StopArena,
    matrix: DistanceMatrix,
    start_time: Optional[str],
) -> Optional[DailyRoute]:
    sequence: list[int] = []
    for stop in stops:
        try:
            sequence.append(arena.index_of(stop))
        except StopNotFound:
            logger.warning(f"Facility '{stop.name}' is no longer active; dropping it from day {route.day}")
    if not sequence:
        return None
    ordered = optimize_route_order(matrix.distances, sequence, HOME_INDEX)
    return build_day_route(arena, ordered, matrix, start_time or route.start_time, day=route.day)


def _rebuild(
    result: OptimizationResult,
    members: dict[int, list[Stop]],
    affected: Iterable[int],
    arena: StopArena,
    matrix: DistanceMatrix,
    start_time: Optional[str],
) -> OptimizationResult:
    matrix.check_compatible(arena)
    affected = set(affected)
    routes: list[DailyRoute] = []
    for route in result.routes:
        if route.day in affected:
            rebuilt = _reoptimize(route, members[route.day], arena, matrix, start_time)
        else:
            rebuilt = _reindex(route, arena, matrix)
        if rebuilt is None:
            logger.info(f"Day {route.day} has no active stops left and was removed")
            continue
        routes.append(rebuilt)
    return OptimizationResult.from_routes(routes)


def _members(result: OptimizationResult) -> dict[int, list[Stop]]:
    return {route.day: list(route.stops) for route in result.routes}


def move_stop(
    result: OptimizationResult,
    stop_index: int,
    from_day: int,
    to_day: int,
    *,
    arena: StopArena,
    matrix: DistanceMatrix,
    start_time: Optional[str] = None,
) -> OptimizationResult:
    """Move one stop to the end of another day and re-optimise both days."""
    _require_day(result, from_day)
    _require_day(result, to_day)
    members = _members(result)
    stop = _take(members[from_day], stop_index, from_day)
    members[to_day].append(stop)
    logger.info(f"Moving '{stop.name}' from day {from_day} to day {to_day}")
    return _rebuild(result, members, {from_day, to_day}, arena, matrix, start_time)


def bulk_move_stops(
    result: OptimizationResult,
    stop_indices: Sequence[int],
    to_day: int,
    *,
    arena: StopArena,
    matrix: DistanceMatrix,
    start_time: Optional[str] = None,
) -> OptimizationResult:
    """Move several stops, from any days, onto ``to_day`` and re-optimise every touched day."""
    _require_day(result, to_day)
    members = _members(result)
    affected = {to_day}
    moving: list[Stop] = []
    for stop_index in dict.fromkeys(stop_indices):
        source_day = next(
            (day for day, stops in members.items() if any(stop.index == stop_index for stop in stops)),
            None,
        )
        if source_day is None:
            raise StopNotFound(f"Stop {stop_index} is not part of this plan.")
        moving.append(_take(members[source_day], stop_index, source_day))
        affected.add(source_day)
    members[to_day].extend(moving)
    logger.info(f"Moving {len(moving)} stops to day {to_day} (days touched: {sorted(affected)})")
    return _rebuild(result, members, affected, arena, matrix, start_time)


def remove_stop(
    result: OptimizationResult,
    stop_index: int,
    day: int,
    *,
    arena: StopArena,
    matrix: DistanceMatrix,
    start_time: Optional[str] = None,
) -> OptimizationResult:
    """Drop a stop from ``day``; the day disappears when it was the last stop."""
    _require_day(result, day)
    members = _members(result)
    stop = _take(members[day], stop_index, day)
    logger.info(f"Removing '{stop.name}' from day {day}")
    return _rebuild(result, members, {day}, arena, matrix, start_time)
