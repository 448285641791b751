"""Library configuration and settings management."""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_CLOCK_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class Settings(BaseSettings):
    """Defaults for the routing core, overridable through ``FIELDROUTE_*`` variables.

    Components take explicit arguments and only fall back to these values, so an
    application can build its own ``Settings`` and pass the fields in.
    """

    model_config = SettingsConfigDict(
        env_prefix="FIELDROUTE_",
        case_sensitive=False,
    )

    osrm_base_url: str = Field(
        default="https://router.project-osrm.org",
        description="Base URL for the OSRM routing service.",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing travel times.",
    )
    osrm_timeout_seconds: float = Field(default=30.0, gt=0.0)
    osrm_max_attempts: int = Field(default=3, ge=1)
    osrm_rate_limit_backoff_seconds: float = Field(default=2.0, ge=0.0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_max_locations_per_request: int = Field(
        default=100,
        ge=2,
        description="Largest coordinate list sent in one table request; larger sets are batched.",
    )
    osrm_batch_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between sequential batch requests to respect rate limits.",
    )

    fallback_detour_factor: float = Field(default=1.3, ge=1.0)
    fallback_average_speed_mph: float = Field(default=45.0, gt=0.0)

    default_start_time: str = Field(default="08:00", description="Day start time (HH:MM).")
    default_visit_duration_minutes: int = Field(default=30, ge=0)
    default_clustering_tightness: float = Field(default=0.5, ge=0.0, le=1.0)
    default_cluster_balance_weight: float = Field(default=0.5, ge=0.0, le=1.0)

    clustering_max_iterations: int = Field(default=50, ge=1)
    clustering_random_state: int = 42
    route_max_passes: int = Field(default=200, ge=1)
    route_improvement_epsilon: float = Field(default=0.001, ge=0.0)
    merge_travel_minutes_per_stop: int = Field(
        default=15,
        ge=0,
        description="Rough travel estimate per stop used when testing a cluster merge against the hours budget.",
    )
    merge_adjacency_factor: float = Field(
        default=2.0,
        gt=0.0,
        description="Clusters are adjacent when centroid distance <= factor x mean intra-cluster distance.",
    )
    balance_redistribution_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    cohesion_spread_factor: float = Field(default=3.0, gt=1.0)
    cohesion_max_bearing_span_degrees: float = Field(default=100.0, gt=0.0, le=360.0)
    backfill_stops_per_day: int = Field(default=10, ge=1)
    sunset_warning_minutes: int = Field(default=60, ge=0)

    @field_validator("default_start_time", mode="before")
    @classmethod
    def _validate_clock(cls, value: Any) -> str:
        text = str(value).strip()
        if not _CLOCK_PATTERN.match(text):
            raise ValueError(f"Expected a HH:MM clock time, got {value!r}")
        hours, minutes = text.split(":")
        return f"{int(hours):02d}:{minutes}"


settings = Settings()
