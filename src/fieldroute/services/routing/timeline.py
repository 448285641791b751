"""Day timelines: segment times and totals for an ordered list of stops."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Optional, Sequence

from ...models.domain import HOME_INDEX, Stop, StopArena
from .models import HOME_BASE_LABEL, MINUTES_PER_DAY, DailyRoute, DistanceMatrix, Segment

logger = logging.getLogger(__name__)

_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_clock(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    match = _CLOCK.match(value or "")
    if not match:
        raise ValueError(f"Invalid clock time {value!r}; expected HH:MM.")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid clock time {value!r}; expected HH:MM.")
    return hours * 60 + minutes


def format_clock(total_minutes: float) -> str:
    minutes = int(round(total_minutes)) % MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(clock: str, minutes: float) -> str:
    return format_clock(parse_clock(clock) + minutes)


def _assemble(
    day: int,
    sequence: Sequence[int],
    stops: Sequence[Stop],
    legs: Sequence[tuple[float, int]],
    start_time: str,
) -> DailyRoute:
    """Walk home -> stops -> home, advancing the clock by drive then visit time.

    ``legs`` holds one (miles, minutes) pair per segment, so ``len(stops) + 1``.
    """
    clock = parse_clock(start_time)
    segments: list[Segment] = []
    names = [HOME_BASE_LABEL, *(stop.name for stop in stops), HOME_BASE_LABEL]
    last_departure = clock
    total_visit = 0

    for position, (distance, duration) in enumerate(legs):
        clock += duration
        arrival = clock
        if position < len(stops):
            visit = stops[position].visit_duration
            total_visit += visit
            clock += visit
            last_departure = clock
        segments.append(
            Segment(
                from_name=names[position],
                to_name=names[position + 1],
                distance=distance,
                duration=duration,
                arrival_time=format_clock(arrival),
                departure_time=format_clock(clock),
            )
        )

    if clock >= MINUTES_PER_DAY:
        logger.warning(f"Day {day} runs past midnight (back home at {format_clock(clock)} the next day)")
    total_drive = sum(duration for _, duration in legs)
    return DailyRoute(
        day=day,
        sequence=tuple(sequence),
        stops=tuple(stops),
        segments=tuple(segments),
        total_miles=sum(distance for distance, _ in legs),
        total_drive_time=total_drive,
        total_visit_time=total_visit,
        total_time=total_drive + total_visit,
        start_time=format_clock(parse_clock(start_time)),
        end_time=format_clock(clock),
        last_stop_departure_time=format_clock(last_departure),
    )


def build_day_route(
    arena: StopArena,
    sequence: Sequence[int],
    matrix: DistanceMatrix,
    start_time: str,
    day: int = 0,
    home_index: int = HOME_INDEX,
) -> DailyRoute:
    """Materialise a day: resolve every index in ``sequence`` and time each leg.

    Raises ``StopNotFound`` for an index with no stop in ``arena``.
    """
    if not sequence:
        raise ValueError("Cannot build a day route without stops.")
    stops = [arena.stop(index) for index in sequence]
    path = [home_index, *sequence, home_index]
    legs = [
        (float(matrix.distances[origin][destination]), int(matrix.durations[origin][destination]))
        for origin, destination in zip(path, path[1:])
    ]
    return _assemble(day, sequence, stops, legs, start_time)


def recalculate_route_times(
    route: DailyRoute,
    *,
    start_time: Optional[str] = None,
    stops: Optional[Sequence[Stop]] = None,
) -> DailyRoute:
    """Re-time ``route`` without reordering it.

    Drive legs are replayed from the existing segments; visit durations come from
    ``stops`` (same order as the route) when given, else from the route's own stops.
    """
    current_stops = list(stops) if stops is not None else list(route.stops)
    if len(current_stops) != len(route.stops):
        raise ValueError("Replacement stops must match the route's stop count.")
    if len(route.segments) != len(current_stops) + 1:
        raise ValueError(
            f"Day {route.day} has {len(route.segments)} segments for {len(current_stops)} stops."
        )
    legs = [(segment.distance, segment.duration) for segment in route.segments]
    rebuilt = _assemble(route.day, route.sequence, current_stops, legs, start_time or route.start_time)
    return replace(route, **{name: getattr(rebuilt, name) for name in _TIMED_FIELDS})


_TIMED_FIELDS = (
    "stops",
    "segments",
    "total_miles",
    "total_drive_time",
    "total_visit_time",
    "total_time",
    "start_time",
    "end_time",
    "last_stop_departure_time",
)
