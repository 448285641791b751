"""Stop ordering: nearest-neighbour construction and 2-opt refinement."""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ...models.domain import HOME_INDEX

logger = logging.getLogger(__name__)


def route_distance(distances: Sequence[Sequence[float]], route: Sequence[int], home_index: int = HOME_INDEX) -> float:
    """Length of the closed tour home -> route... -> home."""
    if not route:
        return 0.0
    total = distances[home_index][route[0]]
    for origin, destination in zip(route, route[1:]):
        total += distances[origin][destination]
    total += distances[route[-1]][home_index]
    return total


def nearest_neighbor_tour(
    distances: Sequence[Sequence[float]],
    stop_ids: Sequence[int],
    home_index: int = HOME_INDEX,
) -> list[int]:
    """Greedy tour starting from home: always drive to the closest unvisited stop.

    The first stop is therefore the one nearest home. Ties resolve to the
    earliest id in ``stop_ids``.
    """
    remaining = list(dict.fromkeys(stop_ids))
    tour: list[int] = []
    current = home_index
    while remaining:
        nearest = min(remaining, key=lambda candidate: distances[current][candidate])
        tour.append(nearest)
        remaining.remove(nearest)
        current = nearest
    return tour


def optimize_route_order(
    distances: Sequence[Sequence[float]],
    route: Sequence[int],
    home_index: int = HOME_INDEX,
    max_passes: int | None = None,
    epsilon: float | None = None,
) -> list[int]:
    """Refine ``route`` with 2-opt segment reversals.

    A reversal of ``route[i..j]`` is tried when the two replaced edges (including
    the legs to and from home at the tour ends) promise a gain above ``epsilon``
    and kept only if the full tour length strictly drops. Stops after a pass with
    no accepted move or after ``max_passes`` passes.
    """
    best = list(route)
    if len(best) <= 2:
        return best

    max_passes = max_passes if max_passes is not None else settings.route_max_passes
    epsilon = epsilon if epsilon is not None else settings.route_improvement_epsilon
    best_distance = route_distance(distances, best, home_index)

    passes = 0
    improved = True
    while improved and passes < max_passes:
        improved = False
        passes += 1
        for i in range(len(best) - 1):
            for j in range(i + 1, len(best)):
                before = home_index if i == 0 else best[i - 1]
                after = best[j + 1] if j + 1 < len(best) else home_index
                current_edges = distances[before][best[i]] + distances[best[j]][after]
                swapped_edges = distances[before][best[j]] + distances[best[i]][after]
                if swapped_edges >= current_edges - epsilon:
                    continue
                candidate = best[:i] + best[i : j + 1][::-1] + best[j + 1 :]
                candidate_distance = route_distance(distances, candidate, home_index)
                if candidate_distance < best_distance:
                    best = candidate
                    best_distance = candidate_distance
                    improved = True

    logger.debug(f"2-opt finished after {passes} passes; tour length {best_distance:.2f} mi")
    return best
