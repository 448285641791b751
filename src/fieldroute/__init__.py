"""Multi-day field route planning."""

from .errors import (
    FieldRouteError,
    NoActiveStops,
    NoHomeBase,
    ProviderUnavailable,
    StaleMatrixError,
    StopNotFound,
    UnknownDay,
)
from .models.domain import Coordinate, Facility, Stop, StopArena
from .services.outputs.routing_formatter import (
    optimization_result_from_json,
    optimization_result_to_csv,
    optimization_result_to_json,
    summary_columns,
)
from .services.routing.daylight import SunsetStatus, estimate_sunset_minutes, sunset_status
from .services.routing.distance_provider import DistanceProvider
from .services.routing.models import (
    DailyRoute,
    DistanceMatrix,
    OptimizationConstraints,
    OptimizationResult,
    Segment,
)
from .services.routing.service import (
    bulk_reassign_stops,
    plan_routes,
    reassign_stop,
    refresh_route_times,
    remove_stop_from_route,
    resequence_assigned_days,
    route_geometry,
    sunset_report,
)

__all__ = [
    "Coordinate",
    "DailyRoute",
    "DistanceMatrix",
    "DistanceProvider",
    "Facility",
    "FieldRouteError",
    "NoActiveStops",
    "NoHomeBase",
    "OptimizationConstraints",
    "OptimizationResult",
    "ProviderUnavailable",
    "Segment",
    "StaleMatrixError",
    "Stop",
    "StopArena",
    "StopNotFound",
    "SunsetStatus",
    "UnknownDay",
    "bulk_reassign_stops",
    "estimate_sunset_minutes",
    "optimization_result_from_json",
    "optimization_result_to_csv",
    "optimization_result_to_json",
    "plan_routes",
    "reassign_stop",
    "refresh_route_times",
    "remove_stop_from_route",
    "resequence_assigned_days",
    "route_geometry",
    "summary_columns",
    "sunset_report",
    "sunset_status",
]
