"""Geographic clustering of stops into day-sized groups."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from sklearn.cluster import KMeans

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import EARTH_RADIUS_MILES, haversine_miles

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GeoPoint:
    point_id: int
    latitude: float
    longitude: float


@dataclass(slots=True)
class GeoCluster:
    cluster_id: int
    centroid: Coordinate
    points: list[GeoPoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    def point_ids(self) -> list[int]:
        return [point.point_id for point in self.points]

    def distance_to(self, coordinate: Coordinate) -> float:
        return haversine_miles(
            self.centroid.latitude, self.centroid.longitude, coordinate.latitude, coordinate.longitude
        )


def find_cluster_count(point_count: int, max_points_per_cluster: int, max_clusters: int | None = None) -> int:
    """Smallest cluster count that can hold ``point_count`` at the given capacity."""
    if max_points_per_cluster < 1:
        raise ValueError("max_points_per_cluster must be >= 1")
    if point_count <= max_points_per_cluster:
        return 1
    min_clusters = math.ceil(point_count / max_points_per_cluster)
    if max_clusters and min_clusters > max_clusters:
        return max_clusters
    return min_clusters


def adjust_cluster_count(base_k: int, tightness: float) -> int:
    """Inflate ``base_k`` by tightness: ``max(k, floor(k * (0.5 + tightness)))``."""
    return max(base_k, math.floor(base_k * (0.5 + tightness)))


def geographic_centroid(points: Sequence[GeoPoint]) -> Coordinate:
    """Mean position on the sphere (average of unit vectors)."""
    if not points:
        return Coordinate(0.0, 0.0)
    lat = np.radians([point.latitude for point in points])
    lon = np.radians([point.longitude for point in points])
    x = float(np.mean(np.cos(lat) * np.cos(lon)))
    y = float(np.mean(np.cos(lat) * np.sin(lon)))
    z = float(np.mean(np.sin(lat)))
    return Coordinate(
        latitude=math.degrees(math.atan2(z, math.hypot(x, y))),
        longitude=math.degrees(math.atan2(y, x)),
    )


def make_cluster(cluster_id: int, points: Sequence[GeoPoint]) -> GeoCluster:
    return GeoCluster(cluster_id=cluster_id, centroid=geographic_centroid(points), points=list(points))


def _project(points: Sequence[GeoPoint]) -> np.ndarray:
    """Equirectangular projection (miles) around the points' mean latitude."""
    lat = np.radians([point.latitude for point in points])
    lon = np.radians([point.longitude for point in points])
    lat_ref = float(np.mean(lat))
    lon_ref = float(np.mean(lon))
    x = EARTH_RADIUS_MILES * (lon - lon_ref) * math.cos(lat_ref)
    y = EARTH_RADIUS_MILES * (lat - lat_ref)
    return np.column_stack([x, y])


def kmeans_clusters(
    points: Sequence[GeoPoint],
    k: int,
    max_iterations: int | None = None,
    tightness: float = 0.75,
    random_state: int | None = None,
) -> list[GeoCluster]:
    """Partition ``points`` into at most ``k`` non-empty clusters with K-Means.

    Tightness tightens the convergence tolerance so higher values iterate longer
    towards compact clusters. With ``len(points) <= k`` every point is its own
    cluster.
    """
    if not points:
        return []
    if k < 1:
        raise ValueError("k must be >= 1")
    if len(points) <= k:
        return [make_cluster(index, [point]) for index, point in enumerate(points)]

    distinct = len({(point.latitude, point.longitude) for point in points})
    n_clusters = min(k, distinct)
    if n_clusters < k:
        logger.debug(f"Reducing cluster count from {k} to {n_clusters} distinct locations")

    kmeans = KMeans(
        n_clusters=n_clusters,
        random_state=random_state if random_state is not None else settings.clustering_random_state,
        n_init="auto",
        max_iter=max_iterations or settings.clustering_max_iterations,
        tol=1e-4 * (1.0 - min(max(tightness, 0.0), 1.0)),
    )
    labels = kmeans.fit_predict(_project(points))

    grouped: dict[int, list[GeoPoint]] = {}
    for point, label in zip(points, labels):
        grouped.setdefault(int(label), []).append(point)

    return [
        make_cluster(cluster_id, members)
        for cluster_id, (_, members) in enumerate(sorted(grouped.items()))
        if members
    ]
