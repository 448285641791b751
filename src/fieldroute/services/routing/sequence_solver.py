"""Sequence optimization for caller-fixed day assignments.

Used when the facilities of each day are already decided (for example by hand in
a planning screen) and only the visit order and timeline need to be rebuilt.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ...models.domain import HOME_INDEX, StopArena
from .models import DailyRoute, DistanceMatrix, OptimizationResult
from .timeline import build_day_route
from .tour import optimize_route_order

logger = logging.getLogger(__name__)


def optimize_day_assignments(
    arena: StopArena,
    matrix: DistanceMatrix,
    assignments: Sequence[Sequence[str]],
    start_time: str,
) -> OptimizationResult:
    """Re-order and re-time each day of ``assignments``.

    ``assignments`` lists, per day, the facility ids or names in their current
    order. Empty days are dropped and the rest renumbered in the given order.
    Raises ``StopNotFound`` for a facility that is not in ``arena``.
    """
    matrix.check_compatible(arena)
    routes: list[DailyRoute] = []
    seen: set[int] = set()
    for position, keys in enumerate(assignments, start=1):
        sequence: list[int] = []
        for key in keys:
            index = arena.resolve(key)
            if index in seen:
                logger.warning(f"Facility '{key}' is assigned to more than one day; keeping its first day")
                continue
            seen.add(index)
            sequence.append(index)
        if not sequence:
            logger.debug(f"Skipping empty assignment for day {position}")
            continue
        ordered = optimize_route_order(matrix.distances, sequence, HOME_INDEX)
        routes.append(build_day_route(arena, ordered, matrix, start_time, day=position))

    result = OptimizationResult.from_routes(routes)
    logger.info(f"Re-sequenced {result.total_days} assigned days ({result.total_facilities} stops)")
    return result
