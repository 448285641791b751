"""Domain models for facilities, stops and the run-scoped stop arena."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from ..errors import NoActiveStops, NoHomeBase, StopNotFound

HOME_INDEX = 0

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class Facility:
    """An active facility as supplied by the calling application."""

    name: str
    latitude: float
    longitude: float
    visit_duration_minutes: Optional[int] = None
    facility_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Stop:
    """A facility placed in a run: ``index`` is only meaningful within that run."""

    index: int
    name: str
    latitude: float
    longitude: float
    visit_duration: int
    facility_id: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @property
    def key(self) -> str:
        """Stable identifier used to correlate stops across runs."""
        return self.facility_id or self.name


def _valid_coordinate(latitude: float, longitude: float) -> bool:
    return (
        math.isfinite(latitude)
        and math.isfinite(longitude)
        and -90.0 <= latitude <= 90.0
        and -180.0 <= longitude <= 180.0
    )


class StopArena:
    """Stable list of stops for one run.

    Index 0 is the home base; stops occupy 1..n in the order they were supplied.
    Sequences, segments and matrices all store indices into this arena, while
    anything that outlives the run must correlate stops by ``Stop.key``.
    """

    def __init__(self, home: Coordinate, stops: Sequence[Stop]) -> None:
        for position, stop in enumerate(stops, start=1):
            if stop.index != position:
                raise ValueError(f"Stop '{stop.name}' has index {stop.index}, expected {position}.")
        self.home = home
        self._stops: tuple[Stop, ...] = tuple(stops)
        self._by_id: dict[str, int] = {}
        self._by_name: dict[str, int] = {}
        for stop in self._stops:
            if stop.facility_id:
                self._by_id.setdefault(stop.facility_id, stop.index)
            if stop.name in self._by_name:
                logger.warning(f"Duplicate facility name '{stop.name}'; name lookups resolve to the first occurrence")
                continue
            self._by_name[stop.name] = stop.index

    @classmethod
    def from_facilities(
        cls,
        home: Coordinate | None,
        facilities: Sequence[Facility],
        default_visit_duration: int,
    ) -> "StopArena":
        """Build the arena for a run, validating preconditions first."""
        if home is None:
            raise NoHomeBase("A home-base coordinate is required to plan routes.")
        if not _valid_coordinate(home.latitude, home.longitude):
            raise NoHomeBase(f"Home-base coordinate is invalid: ({home.latitude}, {home.longitude}).")
        if not facilities:
            raise NoActiveStops("No active facilities to route.")

        stops: list[Stop] = []
        for position, facility in enumerate(facilities, start=1):
            latitude = float(facility.latitude)
            longitude = float(facility.longitude)
            if not _valid_coordinate(latitude, longitude):
                raise ValueError(f"Facility '{facility.name}' has invalid coordinates ({latitude}, {longitude}).")
            visit = facility.visit_duration_minutes
            stops.append(
                Stop(
                    index=position,
                    name=facility.name,
                    latitude=latitude,
                    longitude=longitude,
                    visit_duration=int(visit) if visit else int(default_visit_duration),
                    facility_id=facility.facility_id,
                )
            )
        return cls(home, stops)

    def __len__(self) -> int:
        return len(self._stops)

    def __iter__(self) -> Iterator[Stop]:
        return iter(self._stops)

    @property
    def stops(self) -> tuple[Stop, ...]:
        return self._stops

    def indices(self) -> list[int]:
        return [stop.index for stop in self._stops]

    def coordinates(self) -> list[Coordinate]:
        """Home base followed by every stop, matching matrix indices."""
        return [self.home, *(stop.coordinate for stop in self._stops)]

    def stop(self, index: int) -> Stop:
        if index < 1 or index > len(self._stops):
            raise StopNotFound(f"No stop at index {index} (run has {len(self._stops)} stops).")
        return self._stops[index - 1]

    def index_of(self, stop: Stop) -> int:
        """Resolve a stop from another run to its index here, by id then by name."""
        if stop.facility_id and stop.facility_id in self._by_id:
            return self._by_id[stop.facility_id]
        if stop.name in self._by_name:
            return self._by_name[stop.name]
        raise StopNotFound(f"Facility '{stop.name}' is not among the active stops.")

    def resolve(self, key: str) -> int:
        """Index for a facility id or, failing that, a facility name."""
        if key in self._by_id:
            return self._by_id[key]
        if key in self._by_name:
            return self._by_name[key]
        raise StopNotFound(f"Facility '{key}' is not among the active stops.")
