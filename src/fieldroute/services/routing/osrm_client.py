"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

import httpx

from ...config import settings
from .retry import RateLimited, RetryPolicy, TransientProviderError

logger = logging.getLogger(__name__)


class OSRMClient:
    """Thin synchronous wrapper over the OSRM ``table`` and ``route`` endpoints.

    Every request goes through a ``RetryPolicy``; single attempts translate HTTP
    outcomes into ``RateLimited`` / ``TransientProviderError`` so the policy can
    decide how long to wait. Pass ``transport`` (e.g. ``httpx.MockTransport``) to
    run without a network.
    """

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url).rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self.transport,
        )

    def _get_json(self, url: str, params: dict[str, str]) -> dict:
        """Perform one attempt and return the decoded ``Ok`` payload."""
        client = self._get_client()
        try:
            try:
                response = client.get(url, params=params)
            except httpx.TimeoutException as error:
                raise TransientProviderError(f"OSRM request timed out: {error}") from error
            except httpx.HTTPError as error:
                raise TransientProviderError(f"Failed to reach OSRM at {self.base_url}: {error}") from error
        finally:
            client.close()

        if response.status_code == 429:
            raise RateLimited("OSRM rate limit exceeded")
        if response.is_error:
            raise TransientProviderError(f"OSRM request failed: HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as error:
            raise TransientProviderError("OSRM returned a malformed JSON body") from error
        if not isinstance(data, dict) or data.get("code") != "Ok":
            message = data.get("message", "Unknown error") if isinstance(data, dict) else "Unexpected payload"
            raise TransientProviderError(f"OSRM error: {message}")
        return data

    def _table_once(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"
        data = self._get_json(url, {"annotations": "distance,duration"})
        distances = data.get("distances")
        durations = data.get("durations")
        size = len(coordinates)
        if (
            not isinstance(distances, list)
            or not isinstance(durations, list)
            or len(distances) != size
            or len(durations) != size
        ):
            raise TransientProviderError("OSRM response missing durations/distances.")
        return data

    def table(
        self,
        coordinates: Sequence[tuple[float, float]],
        *,
        fallback: Optional[Callable[[], Optional[dict]]] = None,
    ) -> Optional[dict]:
        """Fetch the full pairwise table for ``(lat, lon)`` coordinates.

        Returns the raw OSRM payload (meters / seconds). Without ``fallback`` an
        exhausted retry budget raises ``ProviderUnavailable``.
        """
        if len(coordinates) < 1:
            raise ValueError("At least one coordinate is required for OSRM table.")
        return self.retry_policy.run(
            lambda: self._table_once(coordinates),
            description=f"OSRM table request ({len(coordinates)} coordinates)",
            fallback=fallback,
        )

    def route(self, coordinates: Sequence[tuple[float, float]]) -> dict:
        """Get route geometry between waypoints using the OSRM route endpoint.

        Returns the payload including ``routes[0].geometry`` as an encoded polyline.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

        def attempt() -> dict:
            data = self._get_json(url, params)
            if not data.get("routes"):
                raise TransientProviderError("OSRM route response has no routes.")
            return data

        return self.retry_policy.run(attempt, description=f"OSRM route request ({len(coordinates)} waypoints)")


def decode_polyline(polyline: str) -> list[tuple[float, float]]:
    """Decode a Google polyline string to a list of (lat, lon) coordinates."""
    coordinates = []
    index = 0
    lat = 0
    lon = 0

    def next_value() -> int:
        nonlocal index
        shift = 0
        result = 0
        while True:
            b = ord(polyline[index]) - 63
            index += 1
            result |= (b & 0x1F) << shift
            shift += 5
            if b < 0x20:
                break
        return ~(result >> 1) if (result & 1) else (result >> 1)

    while index < len(polyline):
        lat += next_value()
        lon += next_value()
        coordinates.append((lat / 1e5, lon / 1e5))

    return coordinates
