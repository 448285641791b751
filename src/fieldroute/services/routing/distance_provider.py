"""Distance/duration matrices backed by OSRM with a great-circle fallback."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional, Sequence

from ...config import settings
from ...errors import FieldRouteError
from ...models.domain import Coordinate
from ..geospatial import METERS_PER_MILE, pairwise_haversine_miles
from .models import DistanceMatrix, coordinate_tuples
from .osrm_client import OSRMClient, decode_polyline

logger = logging.getLogger(__name__)


def _minutes_for(miles: float, average_speed_mph: float) -> int:
    minutes = round(miles / average_speed_mph * 60)
    if miles > 0 and minutes < 1:
        return 1
    return int(minutes)


def haversine_matrix(
    coordinates: Sequence[Coordinate],
    detour_factor: float = 1.0,
    average_speed_mph: float | None = None,
) -> DistanceMatrix:
    """Approximate matrix from straight-line distances scaled by ``detour_factor``."""
    speed = average_speed_mph or settings.fallback_average_speed_mph
    table = pairwise_haversine_miles([coordinate.as_tuple() for coordinate in coordinates]) * detour_factor
    distances = [[float(value) for value in row] for row in table]
    durations = [[_minutes_for(value, speed) for value in row] for row in distances]
    return DistanceMatrix(
        distances=distances,
        durations=durations,
        coordinates=coordinate_tuples(coordinates),
    )


class DistanceProvider:
    """Resolve travel matrices for ``[home, *stops]`` coordinate lists.

    Lists within ``max_locations_per_request`` are fetched in one table request
    and fail with ``ProviderUnavailable`` once retries are exhausted. Longer lists
    are split into sequential batches: each batch's intra-batch cells come from
    OSRM (or straight-line distances if that batch fails), and every cell still
    empty afterwards (cross-batch pairs) is filled with a detour-scaled
    great-circle estimate.
    """

    def __init__(
        self,
        client: OSRMClient | None = None,
        *,
        max_locations_per_request: int | None = None,
        batch_delay_seconds: float | None = None,
        detour_factor: float | None = None,
        average_speed_mph: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client or OSRMClient()
        self.max_locations_per_request = max_locations_per_request or settings.osrm_max_locations_per_request
        if self.max_locations_per_request < 2:
            raise ValueError("max_locations_per_request must be at least 2.")
        self.batch_delay_seconds = (
            batch_delay_seconds if batch_delay_seconds is not None else settings.osrm_batch_delay_seconds
        )
        self.detour_factor = detour_factor if detour_factor is not None else settings.fallback_detour_factor
        self.average_speed_mph = average_speed_mph or settings.fallback_average_speed_mph
        self.sleep = sleep

    def get_matrix(self, coordinates: Sequence[Coordinate]) -> DistanceMatrix:
        """Return the matrix for ``coordinates`` where ``coordinates[0]`` is the home base."""
        if not coordinates:
            return DistanceMatrix(distances=[], durations=[])
        if len(coordinates) <= self.max_locations_per_request:
            payload = self.client.table([coordinate.as_tuple() for coordinate in coordinates])
            distances, durations = _convert_table(payload)
            matrix = DistanceMatrix(
                distances=distances,
                durations=durations,
                coordinates=coordinate_tuples(coordinates),
            )
            self._fill_missing(matrix)
            return matrix

        logger.info(
            f"Processing {len(coordinates)} locations in batches of {self.max_locations_per_request}"
        )
        return self._get_batched_matrix(coordinates)

    def _get_batched_matrix(self, coordinates: Sequence[Coordinate]) -> DistanceMatrix:
        n = len(coordinates)
        batch_size = self.max_locations_per_request
        batch_count = math.ceil(n / batch_size)
        distances: list[list[Optional[float]]] = [[None] * n for _ in range(n)]
        durations: list[list[Optional[int]]] = [[None] * n for _ in range(n)]
        degraded = False

        for batch_number, start in enumerate(range(0, n, batch_size), start=1):
            end = min(start + batch_size, n)
            batch = list(coordinates[start:end])
            logger.info(f"Processing batch {batch_number}/{batch_count}: locations {start} to {end - 1}")

            payload = self.client.table(
                [coordinate.as_tuple() for coordinate in batch],
                fallback=lambda: None,
            )
            if payload is None:
                degraded = True
                logger.warning(
                    f"Batch {batch_number}/{batch_count} failed; using straight-line distances for locations "
                    f"{start} to {end - 1}"
                )
                approx = haversine_matrix(batch, 1.0, self.average_speed_mph)
                batch_distances, batch_durations = approx.distances, approx.durations
            else:
                batch_distances, batch_durations = _convert_table(payload)

            for row in range(len(batch)):
                for col in range(len(batch)):
                    distances[start + row][start + col] = batch_distances[row][col]
                    durations[start + row][start + col] = batch_durations[row][col]

            if end < n:
                self.sleep(self.batch_delay_seconds)

        matrix = DistanceMatrix(
            distances=distances,  # type: ignore[arg-type]
            durations=durations,  # type: ignore[arg-type]
            coordinates=coordinate_tuples(coordinates),
            degraded=degraded,
        )
        self._fill_missing(matrix)
        logger.info(f"Distance matrix calculation complete for {n} locations")
        return matrix

    def _fill_missing(self, matrix: DistanceMatrix) -> None:
        """Fill empty or zero off-diagonal cells with detour-scaled great-circle estimates."""
        estimate: list[list[float]] | None = None
        filled = 0
        for i in range(matrix.size):
            matrix.distances[i][i] = 0.0
            matrix.durations[i][i] = 0
            for j in range(matrix.size):
                if i == j:
                    continue
                distance = matrix.distances[i][j]
                if distance is not None and distance != 0:
                    if matrix.durations[i][j] is None:
                        matrix.durations[i][j] = _minutes_for(distance, self.average_speed_mph)
                    continue
                if estimate is None:
                    estimate = (
                        pairwise_haversine_miles(list(matrix.coordinates)) * self.detour_factor
                    ).tolist()
                matrix.distances[i][j] = float(estimate[i][j])
                matrix.durations[i][j] = _minutes_for(estimate[i][j], self.average_speed_mph)
                filled += 1
        if filled:
            logger.debug(f"Filled {filled} matrix cells with great-circle estimates")

    def get_route_geometry(self, coordinates: Sequence[Coordinate]) -> list[tuple[float, float]] | None:
        """Road geometry through ``coordinates`` as (lat, lon) points, or ``None`` on any failure."""
        if len(coordinates) < 2:
            return None
        try:
            data = self.client.route([coordinate.as_tuple() for coordinate in coordinates])
            geometry = data["routes"][0]["geometry"]
            return decode_polyline(geometry)
        except (FieldRouteError, KeyError, IndexError, TypeError, ValueError) as error:
            logger.warning(f"Route geometry unavailable: {error}")
            return None


def _convert_table(payload: dict) -> tuple[list[list[Optional[float]]], list[list[Optional[int]]]]:
    """Convert OSRM meters/seconds into miles/rounded minutes, keeping unreachable cells as ``None``."""
    distances = [
        [None if value is None else value / METERS_PER_MILE for value in row]
        for row in payload["distances"]
    ]
    durations = [
        [None if value is None else int(round(value / 60)) for value in row]
        for row in payload["durations"]
    ]
    return distances, durations
