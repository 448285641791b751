"""Multi-day route assembly: clusters -> constrained, ordered days."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ...config import settings
from ...models.domain import HOME_INDEX, StopArena
from ..balancing.service import balance_clusters, merge_adjacent_clusters, sort_by_home_distance
from ..zoning.clustering import (
    GeoPoint,
    adjust_cluster_count,
    find_cluster_count,
    kmeans_clusters,
)
from .models import DailyRoute, DistanceMatrix, OptimizationConstraints, OptimizationResult
from .timeline import build_day_route
from .tour import nearest_neighbor_tour, optimize_route_order

BACKFILL_MAX_ITERATIONS = 30
BACKFILL_TIGHTNESS = 0.7

logger = logging.getLogger(__name__)


def _geo_points(arena: StopArena, indices: Sequence[int]) -> list[GeoPoint]:
    return [
        GeoPoint(point_id=index, latitude=arena.stop(index).latitude, longitude=arena.stop(index).longitude)
        for index in indices
    ]


class _DayPlanner:
    """Turns one group of stop indices into as many days as the constraints need."""

    def __init__(self, arena: StopArena, matrix: DistanceMatrix, constraints: OptimizationConstraints) -> None:
        self.arena = arena
        self.matrix = matrix
        self.constraints = constraints

    def build(self, sequence: Sequence[int]) -> DailyRoute:
        return build_day_route(self.arena, sequence, self.matrix, self.constraints.start_time)

    def refine(self, sequence: Sequence[int]) -> list[int]:
        return optimize_route_order(self.matrix.distances, sequence, HOME_INDEX)

    def plan(self, stop_ids: Sequence[int]) -> list[DailyRoute]:
        if not stop_ids:
            return []
        tour = nearest_neighbor_tour(self.matrix.distances, stop_ids, HOME_INDEX)

        route = self.build(self.refine(tour))
        if not self.constraints.exceeds(route):
            return [route]
        unrefined = self.build(tour)
        if not self.constraints.exceeds(unrefined):
            return [unrefined]

        days: list[DailyRoute] = []
        remaining = list(tour)
        while remaining:
            day = [remaining[0]]
            for candidate in remaining[1:]:
                if self.constraints.exceeds(self.build([*day, candidate])):
                    break
                day.append(candidate)
            days.append(self._commit(day))
            taken = set(day)
            remaining = [index for index in remaining if index not in taken]
        return days

    def _commit(self, day: Sequence[int]) -> DailyRoute:
        refined = self.build(self.refine(day))
        if len(day) > 1 and self.constraints.exceeds(refined):
            return self.build(day)
        return refined


def optimize_routes(
    arena: StopArena,
    matrix: DistanceMatrix,
    constraints: OptimizationConstraints | None = None,
) -> OptimizationResult:
    """Assign every stop in ``arena`` to a day and order each day.

    Clusters are visited nearest-home first; a cluster that does not fit one day
    is cut greedily along its nearest-neighbour tour. A single stop always gets a
    day even when it alone breaks the hours limit.
    """
    constraints = constraints or OptimizationConstraints()
    matrix.check_compatible(arena)
    if len(arena) == 0:
        return OptimizationResult()

    capacity = constraints.stop_limit or len(arena)
    points = _geo_points(arena, arena.indices())
    base_k = find_cluster_count(len(points), capacity)
    k = adjust_cluster_count(base_k, constraints.clustering_tightness)

    clusters = kmeans_clusters(
        points,
        k,
        settings.clustering_max_iterations,
        constraints.clustering_tightness,
    )
    clusters = balance_clusters(clusters, capacity, arena.home, constraints.cluster_balance_weight)
    clusters = sort_by_home_distance(clusters, arena.home)
    clusters = merge_adjacent_clusters(clusters, capacity, constraints, arena.home)
    logger.info(f"Clustered {len(arena)} stops into {len(clusters)} groups (k={k}, capacity={capacity})")

    planner = _DayPlanner(arena, matrix, constraints)
    routes: list[DailyRoute] = []
    for cluster in clusters:
        routes.extend(planner.plan(cluster.point_ids()))

    assigned = {index for route in routes for index in route.sequence}
    missing = [index for index in arena.indices() if index not in assigned]
    if missing:
        logger.warning(f"Found {len(missing)} unassigned stops, adding them as extra days")
        per_day = constraints.stop_limit or settings.backfill_stops_per_day
        for cluster in kmeans_clusters(
            _geo_points(arena, missing),
            math.ceil(len(missing) / per_day),
            BACKFILL_MAX_ITERATIONS,
            BACKFILL_TIGHTNESS,
        ):
            routes.extend(planner.plan(cluster.point_ids()))

    result = OptimizationResult.from_routes(routes)
    _verify_coverage(arena, result)
    logger.info(f"Planned {result.total_days} days covering {result.total_facilities} stops")
    return result


def _verify_coverage(arena: StopArena, result: OptimizationResult) -> None:
    seen: list[int] = [index for route in result.routes for index in route.sequence]
    if len(seen) != len(set(seen)) or set(seen) != set(arena.indices()):
        raise RuntimeError(
            f"Route plan covers {len(set(seen))} of {len(arena)} stops with {len(seen) - len(set(seen))} duplicates."
        )
