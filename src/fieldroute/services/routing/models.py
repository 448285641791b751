"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from ...config import settings
from ...errors import StaleMatrixError
from ...models.domain import Coordinate, Stop, StopArena

HOME_BASE_LABEL = "Home Base"
MINUTES_PER_DAY = 24 * 60


@dataclass(slots=True)
class DistanceMatrix:
    """Square travel tables over ``{home} + stops``; miles and whole minutes.

    ``coordinates`` records the (lat, lon) list the tables were built for so a
    matrix is never reused against a different stop set.
    """

    distances: list[list[float]]
    durations: list[list[int]]
    coordinates: tuple[tuple[float, float], ...] = ()
    degraded: bool = False

    def __post_init__(self) -> None:
        size = len(self.distances)
        if len(self.durations) != size:
            raise ValueError("Distance and duration tables must have the same size.")
        for row in (*self.distances, *self.durations):
            if len(row) != size:
                raise ValueError("Distance matrix must be square.")

    @property
    def size(self) -> int:
        return len(self.distances)

    def distance(self, origin: int, destination: int) -> float:
        return self.distances[origin][destination]

    def duration(self, origin: int, destination: int) -> int:
        return self.durations[origin][destination]

    def check_compatible(self, arena: StopArena) -> None:
        """Raise ``StaleMatrixError`` unless this matrix was built for ``arena``."""
        expected = coordinate_tuples(arena.coordinates())
        if self.size != len(expected):
            raise StaleMatrixError(
                f"Distance matrix covers {self.size} locations but the run has {len(expected)}."
            )
        if self.coordinates and self.coordinates != expected:
            raise StaleMatrixError("Distance matrix was built for a different stop set or ordering.")


@dataclass(slots=True)
class OptimizationConstraints:
    max_stops_per_day: Optional[int] = None
    max_hours_per_day: Optional[float] = None
    use_stops_constraint: bool = True
    use_hours_constraint: bool = False
    start_time: str = settings.default_start_time
    clustering_tightness: float = settings.default_clustering_tightness
    cluster_balance_weight: float = settings.default_cluster_balance_weight
    default_visit_duration: int = settings.default_visit_duration_minutes
    merge_travel_minutes_per_stop: int = settings.merge_travel_minutes_per_stop
    merge_adjacency_factor: float = settings.merge_adjacency_factor

    def __post_init__(self) -> None:
        if not 0.0 <= self.clustering_tightness <= 1.0:
            raise ValueError("clustering_tightness must be within [0, 1].")
        if not 0.0 <= self.cluster_balance_weight <= 1.0:
            raise ValueError("cluster_balance_weight must be within [0, 1].")
        if self.max_stops_per_day is not None and self.max_stops_per_day < 0:
            raise ValueError("max_stops_per_day cannot be negative.")
        if self.max_hours_per_day is not None and self.max_hours_per_day < 0:
            raise ValueError("max_hours_per_day cannot be negative.")

    @property
    def stop_limit(self) -> Optional[int]:
        """Active per-day stop cap, or ``None`` when the constraint is off."""
        if self.use_stops_constraint and self.max_stops_per_day:
            return self.max_stops_per_day
        return None

    @property
    def minute_limit(self) -> Optional[float]:
        """Active per-day duration cap in minutes, or ``None`` when off."""
        if self.use_hours_constraint and self.max_hours_per_day:
            return self.max_hours_per_day * 60
        return None

    def exceeds(self, route: "DailyRoute") -> bool:
        stop_limit = self.stop_limit
        if stop_limit is not None and len(route.stops) > stop_limit:
            return True
        minute_limit = self.minute_limit
        return minute_limit is not None and route.total_time > minute_limit


@dataclass(frozen=True, slots=True)
class Segment:
    from_name: str
    to_name: str
    distance: float
    duration: int
    arrival_time: str
    departure_time: str


@dataclass(frozen=True, slots=True)
class DailyRoute:
    """One day out from home and back.

    Clock strings are ``HH:MM`` and wrap at midnight; a day whose timeline runs
    past 24:00 reports it through ``crosses_midnight``.
    """

    day: int
    sequence: tuple[int, ...]
    stops: tuple[Stop, ...]
    segments: tuple[Segment, ...]
    total_miles: float
    total_drive_time: int
    total_visit_time: int
    total_time: int
    start_time: str
    end_time: str
    last_stop_departure_time: str

    def with_day(self, day: int) -> "DailyRoute":
        return self if day == self.day else replace(self, day=day)

    def stop_keys(self) -> list[str]:
        return [stop.key for stop in self.stops]

    @property
    def crosses_midnight(self) -> bool:
        hours, minutes = self.start_time.split(":")
        return int(hours) * 60 + int(minutes) + self.total_time >= MINUTES_PER_DAY


@dataclass(frozen=True, slots=True)
class OptimizationResult:
    """Immutable multi-day plan; edits always build a new instance."""

    routes: tuple[DailyRoute, ...] = field(default_factory=tuple)
    total_miles: float = 0.0
    total_facilities: int = 0
    total_drive_time: int = 0
    total_visit_time: int = 0
    total_time: int = 0

    @property
    def total_days(self) -> int:
        return len(self.routes)

    @classmethod
    def from_routes(cls, routes: Sequence[DailyRoute]) -> "OptimizationResult":
        """Drop empty days, renumber the rest ``1..N`` and recompute grand totals."""
        kept = [route for route in routes if route.stops]
        numbered = tuple(route.with_day(day) for day, route in enumerate(kept, start=1))
        return cls(
            routes=numbered,
            total_miles=sum(route.total_miles for route in numbered),
            total_facilities=sum(len(route.stops) for route in numbered),
            total_drive_time=sum(route.total_drive_time for route in numbered),
            total_visit_time=sum(route.total_visit_time for route in numbered),
            total_time=sum(route.total_time for route in numbered),
        )

    def route_for_day(self, day: int) -> Optional[DailyRoute]:
        for route in self.routes:
            if route.day == day:
                return route
        return None


def coordinate_tuples(coordinates: Sequence[Coordinate]) -> tuple[tuple[float, float], ...]:
    return tuple(coordinate.as_tuple() for coordinate in coordinates)
