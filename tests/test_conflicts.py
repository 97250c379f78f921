from datetime import timedelta

import pytest

from autoschedule.conflicts import check_conflicts
from autoschedule.errors import InputError
from autoschedule.models import ConflictKind, SessionStatus, Severity
from autoschedule.timeutils import WEEKDAYS as ALL_DAYS
from helpers import MONDAY, at, hours

TUESDAY = MONDAY + timedelta(days=1)
SATURDAY = MONDAY + timedelta(days=5)
SUNDAY = MONDAY + timedelta(days=6)
BASE = (40.0, -74.0)
ELEVEN_KM_NORTH = (40.1, -74.0)  # ~11.1 km: ~22 min off-peak, ~33 min in rush hour


def check(therapist, client, start, end, sessions=(), **kwargs):
    return check_conflicts(start, end, therapist.id, client.id, list(sessions), therapist, client, **kwargs)


def test_clean_request_has_no_conflicts(therapist, client):
    assert check(therapist, client, at(MONDAY, "10:00"), at(MONDAY, "11:00")) == []


def test_therapist_double_booking(therapist, client, make_client, make_session):
    other = make_client("c2")
    existing = [make_session("t1", client.id, at(MONDAY, "10:00"), at(MONDAY, "11:00"))]

    conflicts = check(therapist, other, at(MONDAY, "10:30"), at(MONDAY, "11:30"), existing)

    assert len(conflicts) == 1
    assert conflicts[0].kind == ConflictKind.DOUBLE_BOOKING
    assert conflicts[0].party == "therapist"
    assert conflicts[0].sessionId == existing[0].id
    assert "Therapist" in conflicts[0].message


def test_client_double_booking(therapist, client, make_session):
    existing = [make_session("t2", client.id, at(MONDAY, "10:00"), at(MONDAY, "11:00"))]
    conflicts = check(therapist, client, at(MONDAY, "09:30"), at(MONDAY, "10:30"), existing)
    assert [(c.kind, c.party) for c in conflicts] == [(ConflictKind.DOUBLE_BOOKING, "client")]


def test_same_pair_booked_names_both(therapist, client, make_session):
    existing = [make_session("t1", client.id, at(MONDAY, "10:00"), at(MONDAY, "11:00"))]
    conflicts = check(therapist, client, at(MONDAY, "10:00"), at(MONDAY, "11:00"), existing)
    assert [c.party for c in conflicts] == ["both"]


def test_back_to_back_sessions_do_not_overlap(therapist, client, make_session):
    existing = [make_session("t1", "c2", at(MONDAY, "10:00"), at(MONDAY, "11:00"))]
    assert check(therapist, client, at(MONDAY, "11:00"), at(MONDAY, "12:00"), existing) == []
    assert check(therapist, client, at(MONDAY, "09:00"), at(MONDAY, "10:00"), existing) == []


def test_cancelled_sessions_do_not_occupy_time(therapist, client, make_session):
    existing = [make_session("t1", "c2", at(MONDAY, "10:00"), at(MONDAY, "11:00"),
                             status=SessionStatus.CANCELLED)]
    assert check(therapist, client, at(MONDAY, "10:00"), at(MONDAY, "11:00"), existing) == []


def test_unrelated_sessions_are_ignored(therapist, client, make_session):
    existing = [make_session("t9", "c9", at(MONDAY, "10:00"), at(MONDAY, "11:00"))]
    assert check(therapist, client, at(MONDAY, "10:00"), at(MONDAY, "11:00"), existing) == []


def test_excluded_session_never_conflicts_with_itself(therapist, client, make_session):
    session = make_session("t1", client.id, at(MONDAY, "10:00"), at(MONDAY, "11:00"), id="editing")
    conflicts = check(therapist, client, session.start_time, session.end_time, [session],
                      exclude_session_id="editing")
    assert conflicts == []


def test_therapist_outside_declared_hours(therapist, make_client):
    early_client = make_client(availability=hours("08:00", "17:00"))
    conflicts = check(therapist, early_client, at(MONDAY, "08:00"), at(MONDAY, "09:00"))
    assert [(c.kind, c.party) for c in conflicts] == [(ConflictKind.AVAILABILITY_VIOLATION, "therapist")]


def test_session_running_past_window_end(therapist, client):
    conflicts = check(therapist, client, at(MONDAY, "16:30"), at(MONDAY, "17:30"))
    assert {c.party for c in conflicts} == {"therapist", "client"}
    assert all(c.kind == ConflictKind.AVAILABILITY_VIOLATION for c in conflicts)


def test_closed_day_names_the_weekday(therapist, client):
    conflicts = check(therapist, client, at(SATURDAY, "10:00"), at(SATURDAY, "11:00"))
    assert len(conflicts) == 2
    assert all("Saturdays" in c.message for c in conflicts)


def test_sunday_is_never_schedulable(make_therapist, make_client):
    every_day = hours("09:00", "17:00", days=ALL_DAYS)
    therapist = make_therapist(availability=every_day)
    client = make_client(availability=every_day)

    conflicts = check(therapist, client, at(SUNDAY, "10:00"), at(SUNDAY, "11:00"))

    assert [(c.kind, c.party) for c in conflicts] == [
        (ConflictKind.AVAILABILITY_VIOLATION, "therapist"),
        (ConflictKind.AVAILABILITY_VIOLATION, "client"),
    ]
    assert all("Sundays" in c.message for c in conflicts)
    assert check(therapist, client, at(SATURDAY, "10:00"), at(SATURDAY, "11:00")) == []


def test_travel_beyond_client_limit(make_therapist, make_client):
    therapist = make_therapist(latitude=BASE[0], longitude=BASE[1], availability=hours("08:00", "17:00"))
    client = make_client(latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1], max_travel_minutes=20,
                         availability=hours("08:00", "17:00"))

    for start in ("08:00", "12:00"):
        conflicts = check(therapist, client, at(MONDAY, start), at(MONDAY, start) + timedelta(hours=1))
        assert [(c.kind, c.party) for c in conflicts] == [(ConflictKind.TRAVEL_INFEASIBLE, "client")]


def test_rush_hour_alone_can_break_the_travel_limit(make_therapist, make_client):
    therapist = make_therapist(latitude=BASE[0], longitude=BASE[1], availability=hours("08:00", "17:00"))
    client = make_client(latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1], max_travel_minutes=30,
                         availability=hours("08:00", "17:00"))

    rush = check(therapist, client, at(MONDAY, "08:00"), at(MONDAY, "09:00"))
    assert [c.kind for c in rush] == [ConflictKind.TRAVEL_INFEASIBLE]
    assert "rush hour" in rush[0].message
    assert check(therapist, client, at(MONDAY, "12:00"), at(MONDAY, "13:00")) == []


def test_outside_service_radius(make_therapist, make_client):
    therapist = make_therapist(latitude=BASE[0], longitude=BASE[1], service_radius_km=5)
    client = make_client(latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1])
    conflicts = check(therapist, client, at(MONDAY, "12:00"), at(MONDAY, "13:00"))
    assert [(c.kind, c.party) for c in conflicts] == [(ConflictKind.TRAVEL_INFEASIBLE, "therapist")]
    assert "service radius" in conflicts[0].message


def test_outside_client_preferred_radius(make_therapist, make_client):
    therapist = make_therapist(latitude=BASE[0], longitude=BASE[1])
    client = make_client(latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1], preferred_radius_km=10)
    conflicts = check(therapist, client, at(MONDAY, "12:00"), at(MONDAY, "13:00"))
    assert [(c.kind, c.party) for c in conflicts] == [(ConflictKind.TRAVEL_INFEASIBLE, "client")]
    assert "preferred 10 km radius" in conflicts[0].message

    roomier = client.model_copy(update={"preferred_radius_km": 15})
    assert check(therapist, roomier, at(MONDAY, "12:00"), at(MONDAY, "13:00")) == []


def test_missing_geolocation_skips_travel_checks(therapist, make_client):
    client = make_client(latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1], max_travel_minutes=1)
    assert check(therapist, client, at(MONDAY, "12:00"), at(MONDAY, "13:00")) == []


@pytest.mark.parametrize("neighbour,proposed,conflicting", [
    (("09:00", "10:00"), ("10:00", "11:00"), True),
    (("09:00", "10:00"), ("10:30", "11:30"), False),
    (("11:00", "12:00"), ("10:00", "10:45"), True),
    (("11:00", "12:00"), ("09:00", "10:00"), False),
])
def test_transition_between_consecutive_sessions(make_therapist, make_client, make_session,
                                                 neighbour, proposed, conflicting):
    therapist = make_therapist(latitude=BASE[0], longitude=BASE[1])
    nearby = make_client("c-near", latitude=BASE[0], longitude=BASE[1])
    far = make_client("c-far", latitude=ELEVEN_KM_NORTH[0], longitude=ELEVEN_KM_NORTH[1])
    existing = [make_session("t1", "c-near", at(MONDAY, neighbour[0]), at(MONDAY, neighbour[1]), id="prev")]
    roster = {c.id: c for c in (nearby, far)}

    conflicts = check(therapist, far, at(MONDAY, proposed[0]), at(MONDAY, proposed[1]), existing,
                      clients_by_id=roster)

    if conflicting:
        assert [(c.kind, c.sessionId) for c in conflicts] == [(ConflictKind.TRAVEL_INFEASIBLE, "prev")]
    else:
        assert conflicts == []
    # Without the roster the neighbour's location is unknown.
    assert check(therapist, far, at(MONDAY, proposed[0]), at(MONDAY, proposed[1]), existing) == []


def test_weekly_capacity(make_therapist, client, make_session):
    therapist = make_therapist(weekly_hours_max=2)
    existing = [
        make_session("t1", "c2", at(MONDAY, "09:00"), at(MONDAY, "11:00")),
        make_session("t1", "c2", at(MONDAY - timedelta(days=7), "09:00"), at(MONDAY - timedelta(days=7), "17:00")),
    ]
    conflicts = check(therapist, client, at(TUESDAY, "10:00"), at(TUESDAY, "11:00"), existing)
    assert [(c.kind, c.severity) for c in conflicts] == [(ConflictKind.CAPACITY_EXCEEDED, Severity.WARNING)]

    roomier = therapist.model_copy(update={"weekly_hours_max": 3})
    assert check(roomier, client, at(TUESDAY, "10:00"), at(TUESDAY, "11:00"), existing) == []


def test_detector_is_pure(therapist, client, make_session):
    existing = [make_session("t1", "c2", at(MONDAY, "10:00"), at(MONDAY, "11:00"))]
    first = check(therapist, client, at(MONDAY, "10:30"), at(MONDAY, "11:30"), existing)
    second = check(therapist, client, at(MONDAY, "10:30"), at(MONDAY, "11:30"), existing)
    assert first == second
    assert len(existing) == 1


def test_end_must_follow_start(therapist, client):
    with pytest.raises(InputError):
        check(therapist, client, at(MONDAY, "11:00"), at(MONDAY, "11:00"))


def test_ids_must_match_records(therapist, client):
    with pytest.raises(InputError):
        check_conflicts(at(MONDAY, "10:00"), at(MONDAY, "11:00"), "someone-else", client.id, [],
                        therapist, client)
    with pytest.raises(InputError):
        check_conflicts(at(MONDAY, "10:00"), at(MONDAY, "11:00"), therapist.id, "", [], therapist, client)
