"""Rough sunset estimate used to flag days that finish in the dark."""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Optional

from ...config import settings
from .models import DailyRoute
from .timeline import parse_clock

WINTER_MONTHS = (11, 12, 1, 2)
SUMMER_MONTHS = (5, 6, 7, 8)
REFERENCE_LATITUDE = 35.0
DEGREES_PER_HOUR = 10.0


class SunsetStatus(str, Enum):
    BEFORE_SUNSET = "before_sunset"
    NEAR_SUNSET = "near_sunset"
    AFTER_SUNSET = "after_sunset"


def estimate_sunset_minutes(latitude: float, on_date: Optional[date] = None) -> int:
    """Approximate local sunset as minutes after midnight.

    17:00 in winter, 20:00 in summer and 18:00 otherwise, moved by one hour for
    every 10 degrees of latitude away from 35N.
    """
    month = (on_date or date.today()).month
    if month in WINTER_MONTHS:
        base_hour = 17
    elif month in SUMMER_MONTHS:
        base_hour = 20
    else:
        base_hour = 18
    adjustment = math.floor((latitude - REFERENCE_LATITUDE) / DEGREES_PER_HOUR)
    return (base_hour + adjustment) * 60


def sunset_status(
    route: DailyRoute,
    sunset_offset_minutes: int = 0,
    on_date: Optional[date] = None,
    warning_minutes: Optional[int] = None,
    latitude: Optional[float] = None,
) -> SunsetStatus:
    """Compare the day's last-stop departure with sunset shifted by the caller's offset.

    Sunset is estimated at ``latitude``, defaulting to the day's first stop.
    """
    if latitude is None:
        if not route.stops:
            raise ValueError("Cannot estimate sunset for a day without stops.")
        latitude = route.stops[0].latitude
    warning_minutes = warning_minutes if warning_minutes is not None else settings.sunset_warning_minutes
    sunset = estimate_sunset_minutes(latitude, on_date) + sunset_offset_minutes
    departure = parse_clock(route.last_stop_departure_time)
    if departure > sunset:
        return SunsetStatus.AFTER_SUNSET
    if sunset - departure < warning_minutes:
        return SunsetStatus.NEAR_SUNSET
    return SunsetStatus.BEFORE_SUNSET
