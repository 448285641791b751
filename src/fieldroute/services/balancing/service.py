"""Cluster balancing and merging against the per-day capacity."""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import bearing_degrees, haversine_miles, mean_pairwise_distance
from ..routing.models import OptimizationConstraints
from ..zoning.clustering import GeoCluster, GeoPoint, kmeans_clusters, make_cluster

SUBCLUSTER_MAX_ITERATIONS = 30
SUBCLUSTER_TIGHTNESS = 0.8
RADIUS_PERCENTILE = 0.95
RADIUS_EXPANSION = 1.5

logger = logging.getLogger(__name__)


def _distance_to_point(point: GeoPoint, coordinate: Coordinate) -> float:
    return haversine_miles(point.latitude, point.longitude, coordinate.latitude, coordinate.longitude)


def sort_by_home_distance(clusters: Sequence[GeoCluster], home: Coordinate) -> list[GeoCluster]:
    return sorted(clusters, key=lambda cluster: cluster.distance_to(home))


def _renumber(clusters: Sequence[GeoCluster]) -> list[GeoCluster]:
    for cluster_id, cluster in enumerate(clusters):
        cluster.cluster_id = cluster_id
    return list(clusters)


def _cluster_radius(cluster: GeoCluster) -> float:
    """95th-percentile distance of members from the centroid."""
    if not cluster.points:
        return 0.0
    distances = sorted(_distance_to_point(point, cluster.centroid) for point in cluster.points)
    index = min(math.floor(len(distances) * RADIUS_PERCENTILE), len(distances) - 1)
    return distances[index]


def redistribute_points(
    clusters: Sequence[GeoCluster],
    capacity: int,
    home: Coordinate,
    balance_weight: float,
    threshold: float | None = None,
) -> list[GeoCluster]:
    """Even out sizes of neighbouring clusters when ``balance_weight`` asks for it.

    Clusters are ordered by distance from home; each one hands its points nearest
    the next cluster's centroid over while it is above the average size, the
    next one has room, and the move keeps the point within the next cluster's
    expanded radius.
    """
    threshold = threshold if threshold is not None else settings.balance_redistribution_threshold
    ordered = sort_by_home_distance(clusters, home)
    if balance_weight < threshold or len(ordered) < 2:
        return ordered

    average_size = sum(len(cluster) for cluster in ordered) / len(ordered)
    moved = 0
    for current, following in zip(ordered, ordered[1:]):
        max_radius = _cluster_radius(following) * RADIUS_EXPANSION
        while (
            len(current) > average_size
            and len(following) < capacity
            and len(current) > len(following) + 1
        ):
            candidate = min(current.points, key=lambda point: _distance_to_point(point, following.centroid))
            if _distance_to_point(candidate, following.centroid) > max_radius:
                break
            current.points.remove(candidate)
            following.points.append(candidate)
            current.centroid = make_cluster(current.cluster_id, current.points).centroid
            following.centroid = make_cluster(following.cluster_id, following.points).centroid
            moved += 1

    if moved:
        logger.debug(f"Redistributed {moved} points between neighbouring clusters")
    return ordered


def _split_by_spread(cluster: GeoCluster, spread_factor: float) -> list[GeoCluster] | None:
    distances = [_distance_to_point(point, cluster.centroid) for point in cluster.points]
    average = sum(distances) / len(distances)
    if max(distances) <= average * spread_factor:
        return None
    ranked = [point for _, point in sorted(zip(distances, cluster.points), key=lambda item: item[0])]
    midpoint = len(ranked) // 2
    return [make_cluster(cluster.cluster_id, part) for part in (ranked[:midpoint], ranked[midpoint:]) if part]


def _split_by_bearing(cluster: GeoCluster, home: Coordinate, max_span: float) -> list[GeoCluster] | None:
    bearings = sorted(
        (bearing_degrees(home.latitude, home.longitude, point.latitude, point.longitude), position)
        for position, point in enumerate(cluster.points)
    )
    values = [bearing for bearing, _ in bearings]
    gaps = [(values[(i + 1) % len(values)] - values[i]) % 360 for i in range(len(values))]
    widest = int(np.argmax(gaps))
    span = 360 - gaps[widest]
    if span <= max_span:
        return None

    arc_start = values[(widest + 1) % len(values)]
    first: list[GeoPoint] = []
    second: list[GeoPoint] = []
    for bearing, position in bearings:
        offset = (bearing - arc_start) % 360
        (first if offset < span / 2 else second).append(cluster.points[position])
    return [make_cluster(cluster.cluster_id, part) for part in (first, second) if part]


def validate_geographic_cohesion(
    clusters: Sequence[GeoCluster],
    home: Coordinate,
    spread_factor: float | None = None,
    max_bearing_span: float | None = None,
) -> list[GeoCluster]:
    """Split clusters that are too spread out or wrap around the home base.

    A cluster is halved by distance from its centroid when its farthest member is
    more than ``spread_factor`` times the average; otherwise it is split at the
    middle of its bearing arc (as seen from home) when that arc is wider than
    ``max_bearing_span`` degrees.
    """
    spread_factor = spread_factor if spread_factor is not None else settings.cohesion_spread_factor
    max_bearing_span = (
        max_bearing_span if max_bearing_span is not None else settings.cohesion_max_bearing_span_degrees
    )
    validated: list[GeoCluster] = []
    for cluster in clusters:
        if len(cluster) <= 1:
            validated.append(cluster)
            continue
        parts = _split_by_spread(cluster, spread_factor)
        if parts is None:
            parts = _split_by_bearing(cluster, home, max_bearing_span)
        if parts is None:
            validated.append(cluster)
            continue
        logger.debug(f"Split cluster {cluster.cluster_id} ({len(cluster)} points) into {len(parts)} for cohesion")
        validated.extend(parts)
    return _renumber(validated)


def balance_clusters(
    clusters: Sequence[GeoCluster],
    capacity: int,
    home: Coordinate,
    balance_weight: float,
) -> list[GeoCluster]:
    """Re-cluster overloaded clusters, rebalance the pieces, then check cohesion."""
    if capacity < 1:
        raise ValueError("capacity must be >= 1")
    if not any(len(cluster) > capacity for cluster in clusters):
        return validate_geographic_cohesion(clusters, home)

    balanced: list[GeoCluster] = []
    for cluster in clusters:
        if len(cluster) <= capacity:
            balanced.append(cluster)
            continue
        sub_count = math.ceil(len(cluster) / capacity)
        sub_clusters = kmeans_clusters(
            cluster.points,
            sub_count,
            SUBCLUSTER_MAX_ITERATIONS,
            SUBCLUSTER_TIGHTNESS,
        )
        logger.debug(f"Split overloaded cluster of {len(cluster)} points into {len(sub_clusters)}")
        balanced.extend(
            sub
            for sub in redistribute_points(sub_clusters, capacity, home, balance_weight)
            if sub.points
        )
    return validate_geographic_cohesion(_renumber(balanced), home)


def merge_adjacent_clusters(
    clusters: Sequence[GeoCluster],
    capacity: int,
    constraints: OptimizationConstraints,
    home: Coordinate,
) -> list[GeoCluster]:
    """Greedily fold later clusters into earlier ones when they fit together.

    A pair merges when the combined size fits ``capacity``, the centroids are
    adjacent (within ``merge_adjacency_factor`` x the mean intra-cluster distance,
    a test skipped when either side is a single point) and, with an hours limit,
    the rough estimate of visit plus per-stop travel time fits the day.
    """
    minute_limit = constraints.minute_limit
    processed: set[int] = set()
    merged: list[GeoCluster] = []

    for i, base in enumerate(clusters):
        if i in processed:
            continue
        processed.add(i)
        current = GeoCluster(base.cluster_id, base.centroid, list(base.points))

        for j in range(i + 1, len(clusters)):
            if j in processed:
                continue
            candidate = clusters[j]
            combined = len(current) + len(candidate)
            if combined > capacity:
                continue

            if len(current) > 1 and len(candidate) > 1:
                centroid_distance = haversine_miles(
                    current.centroid.latitude,
                    current.centroid.longitude,
                    candidate.centroid.latitude,
                    candidate.centroid.longitude,
                )
                average_intra = (
                    mean_pairwise_distance([(p.latitude, p.longitude) for p in current.points])
                    + mean_pairwise_distance([(p.latitude, p.longitude) for p in candidate.points])
                ) / 2
                if average_intra > 0 and centroid_distance > average_intra * constraints.merge_adjacency_factor:
                    continue

            if minute_limit is not None:
                estimate = combined * (constraints.default_visit_duration + constraints.merge_travel_minutes_per_stop)
                if estimate > minute_limit:
                    continue

            current = GeoCluster(
                cluster_id=current.cluster_id,
                centroid=Coordinate(
                    latitude=(
                        current.centroid.latitude * len(current) + candidate.centroid.latitude * len(candidate)
                    ) / combined,
                    longitude=(
                        current.centroid.longitude * len(current) + candidate.centroid.longitude * len(candidate)
                    ) / combined,
                ),
                points=[*current.points, *candidate.points],
            )
            processed.add(j)
            logger.debug(f"Merged cluster {candidate.cluster_id} into {current.cluster_id} ({combined} points)")

        merged.append(current)

    return _renumber(sort_by_home_distance(merged, home))
