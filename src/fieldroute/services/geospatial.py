"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

EARTH_RADIUS_MILES = 3958.8
METERS_PER_MILE = 1609.34


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def pairwise_haversine_miles(points: Sequence[tuple[float, float]]) -> np.ndarray:
    """Return the symmetric NxN great-circle distance table for (lat, lon) points."""

    if not points:
        return np.zeros((0, 0))
    coords = np.radians(np.asarray(points, dtype=float))
    lat = coords[:, 0][:, np.newaxis]
    lon = coords[:, 1][:, np.newaxis]
    d_phi = lat.T - lat
    d_lambda = lon.T - lon
    a = np.sin(d_phi / 2) ** 2 + np.cos(lat) * np.cos(lat.T) * np.sin(d_lambda / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1 - a, 0.0, None)))
    return EARTH_RADIUS_MILES * c


def mean_pairwise_distance(points: Sequence[tuple[float, float]]) -> float:
    """Average distance over every unordered pair; 0.0 when fewer than two points."""

    if len(points) < 2:
        return 0.0
    table = pairwise_haversine_miles(points)
    upper = table[np.triu_indices(len(points), k=1)]
    return float(upper.mean())
