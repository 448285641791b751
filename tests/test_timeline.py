import logging

import pytest

from fieldroute.errors import StopNotFound
from fieldroute.models.domain import Coordinate, Facility, StopArena
from fieldroute.services.routing.models import DistanceMatrix
from fieldroute.services.routing.timeline import (
    add_minutes,
    build_day_route,
    format_clock,
    parse_clock,
    recalculate_route_times,
)

HOME = Coordinate(35.0, -97.0)


def _arena(first_visit=30, second_visit=20):
    return StopArena.from_facilities(
        HOME,
        [
            Facility("Alpha Pad", 35.1, -97.1, first_visit, "F-1"),
            Facility("Bravo Tank", 35.2, -97.0, second_visit, "F-2"),
        ],
        default_visit_duration=30,
    )


def _matrix():
    return DistanceMatrix(
        distances=[[0.0, 10.0, 12.0], [10.0, 0.0, 4.0], [12.0, 4.0, 0.0]],
        durations=[[0, 10, 15], [10, 0, 5], [15, 5, 0]],
    )


def _minutes(clock):
    return parse_clock(clock)


def test_build_day_route_timeline():
    route = build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=1)

    assert [(s.from_name, s.to_name) for s in route.segments] == [
        ("Home Base", "Alpha Pad"),
        ("Alpha Pad", "Bravo Tank"),
        ("Bravo Tank", "Home Base"),
    ]
    assert [(s.arrival_time, s.departure_time) for s in route.segments] == [
        ("08:10", "08:40"),
        ("08:45", "09:05"),
        ("09:20", "09:20"),
    ]
    assert route.total_miles == pytest.approx(26.0)
    assert route.total_drive_time == 30
    assert route.total_visit_time == 50
    assert route.total_time == 80
    assert route.start_time == "08:00"
    assert route.end_time == "09:20"
    assert route.last_stop_departure_time == "09:05"
    assert route.sequence == (1, 2)
    assert route.stop_keys() == ["F-1", "F-2"]


def test_timeline_is_monotonic():
    route = build_day_route(_arena(), [2, 1], _matrix(), "07:15")

    clock = _minutes(route.start_time)
    for segment in route.segments:
        arrival = _minutes(segment.arrival_time)
        departure = _minutes(segment.departure_time)
        assert arrival == clock + segment.duration
        assert departure >= arrival
        clock = departure
    assert route.end_time == route.segments[-1].arrival_time
    assert route.total_time == route.total_drive_time + route.total_visit_time


def test_build_rejects_unknown_stop():
    with pytest.raises(StopNotFound):
        build_day_route(_arena(), [1, 5], _matrix(), "08:00")


def test_build_rejects_empty_sequence():
    with pytest.raises(ValueError):
        build_day_route(_arena(), [], _matrix(), "08:00")


def test_recalculate_matches_fresh_build_and_is_idempotent():
    route = build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=3)

    once = recalculate_route_times(route)

    assert once == route
    assert recalculate_route_times(once) == once


def test_recalculate_uses_new_visit_durations():
    route = build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=1)
    updated = _arena(first_visit=45)

    retimed = recalculate_route_times(route, stops=updated.stops)

    assert retimed.sequence == route.sequence
    assert retimed.segments[0].departure_time == "08:55"
    assert retimed.segments[1].arrival_time == "09:00"
    assert retimed.total_visit_time == 65
    assert retimed.total_drive_time == route.total_drive_time
    assert retimed.end_time == "09:35"


def test_recalculate_with_new_start_time():
    route = build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=1)

    retimed = recalculate_route_times(route, start_time="09:30")

    assert retimed.start_time == "09:30"
    assert retimed.segments[0].arrival_time == "09:40"
    assert retimed.end_time == "10:50"
    assert retimed.total_time == route.total_time


def test_recalculate_rejects_mismatched_stops():
    route = build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=1)

    with pytest.raises(ValueError):
        recalculate_route_times(route, stops=_arena().stops[:1])


def test_clock_helpers():
    assert parse_clock("8:05") == 485
    assert format_clock(25 * 60 + 5) == "01:05"
    assert add_minutes("23:50", 20) == "00:10"
    for bad in ("24:00", "7:60", "noon", ""):
        with pytest.raises(ValueError):
            parse_clock(bad)


def test_day_running_past_midnight_is_flagged(caplog):
    with caplog.at_level(logging.WARNING):
        late = build_day_route(_arena(), [1, 2], _matrix(), "23:30", day=4)

    assert late.crosses_midnight
    assert late.segments[0].arrival_time == "23:40"
    assert late.segments[0].departure_time == "00:10"
    assert late.end_time == "00:50"
    assert "Day 4 runs past midnight" in caplog.text
    assert not build_day_route(_arena(), [1, 2], _matrix(), "08:00", day=1).crosses_midnight
