"""Routing wire schemas (the camelCase JSON contract shared with map and storage layers)."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import settings
from ..services.routing.models import OptimizationConstraints
from ..services.routing.timeline import format_clock, parse_clock


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RoutingConstraints(_WireModel):
    max_facilities_per_day: Optional[int] = Field(None, ge=1, alias="maxFacilitiesPerDay")
    max_hours_per_day: Optional[float] = Field(None, gt=0, alias="maxHoursPerDay")
    use_facilities_constraint: bool = Field(True, alias="useFacilitiesConstraint")
    use_hours_constraint: bool = Field(False, alias="useHoursConstraint")
    start_time: str = Field(settings.default_start_time, alias="startTime")
    clustering_tightness: float = Field(settings.default_clustering_tightness, ge=0, le=1, alias="clusteringTightness")
    cluster_balance_weight: float = Field(
        settings.default_cluster_balance_weight, ge=0, le=1, alias="clusterBalanceWeight"
    )
    default_visit_duration: int = Field(settings.default_visit_duration_minutes, ge=0, alias="defaultVisitDuration")

    @field_validator("start_time")
    @classmethod
    def _normalise_start_time(cls, value: str) -> str:
        return format_clock(parse_clock(value))

    def to_constraints(self) -> OptimizationConstraints:
        return OptimizationConstraints(
            max_stops_per_day=self.max_facilities_per_day,
            max_hours_per_day=self.max_hours_per_day,
            use_stops_constraint=self.use_facilities_constraint,
            use_hours_constraint=self.use_hours_constraint,
            start_time=self.start_time,
            clustering_tightness=self.clustering_tightness,
            cluster_balance_weight=self.cluster_balance_weight,
            default_visit_duration=self.default_visit_duration,
        )


class FacilityModel(_WireModel):
    index: int = Field(..., ge=1)
    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    visit_duration: int = Field(..., ge=0, alias="visitDuration")
    facility_id: Optional[str] = Field(None, alias="facilityId")


class SegmentModel(_WireModel):
    from_: str = Field(..., alias="from")
    to: str
    distance: float
    duration: int
    arrival_time: str = Field(..., alias="arrivalTime")
    departure_time: str = Field(..., alias="departureTime")


class DailyRouteModel(_WireModel):
    day: int = Field(..., ge=1)
    facilities: List[FacilityModel]
    sequence: List[int]
    segments: List[SegmentModel]
    total_miles: float = Field(..., alias="totalMiles")
    total_drive_time: int = Field(..., alias="totalDriveTime")
    total_visit_time: int = Field(..., alias="totalVisitTime")
    total_time: int = Field(..., alias="totalTime")
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")
    last_facility_departure_time: str = Field(..., alias="lastFacilityDepartureTime")


class OptimizationResultModel(_WireModel):
    routes: List[DailyRouteModel]
    total_days: int = Field(..., alias="totalDays")
    total_miles: float = Field(..., alias="totalMiles")
    total_facilities: int = Field(..., alias="totalFacilities")
    total_drive_time: int = Field(..., alias="totalDriveTime")
    total_visit_time: int = Field(..., alias="totalVisitTime")
    total_time: int = Field(..., alias="totalTime")
