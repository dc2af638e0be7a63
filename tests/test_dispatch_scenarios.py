from __future__ import annotations

import pytest

from apps.dispatch_backend.errors import NoStationsAvailable, StationUnavailable
from apps.dispatch_backend.models import Incident, ResponseLogEntry
from apps.dispatch_backend.services.dispatch import select_station
from apps.dispatch_backend.services.incidents import (
    ALARM_LEVEL_CHANGE,
    change_alarm_level,
    create_incident,
    get_timeline,
)
from apps.dispatch_backend.services.readiness import list_ready_stations, submit_readiness

# two stations about 67 km apart; each caller below stands about 1.6 km from one of them
A_POS = (7.50, 122.00)
B_POS = (6.90, 122.09)


def test_not_ready_station_is_excluded_from_nearest(db, seed):
    a = seed.station("A", *A_POS, readiness="READY", db=db)
    seed.station("B", *B_POS, readiness="NOT_READY", db=db)

    d = select_station(db, 7.49, 122.01)

    assert d.station_id == a
    assert d.distance_km == pytest.approx(1.57, abs=0.05)
    assert [c.station_id for c in d.candidates] == [a]


def test_both_ready_picks_the_closer_one(db, seed):
    a = seed.station("A", *A_POS, readiness="READY", db=db)
    b = seed.station("B", *B_POS, readiness="READY", db=db)

    d = select_station(db, 6.91, 122.08)

    assert d.station_id == b
    assert d.distance_km == pytest.approx(1.57, abs=0.05)
    by_id = {c.station_id: c.distance_km for c in d.candidates}
    assert set(by_id) == {a, b}
    assert by_id[a] > by_id[b]


def test_no_ready_station_creates_no_incident(db, seed):
    seed.station("A", *A_POS, readiness="NOT_READY", db=db)
    seed.station("B", *B_POS, db=db)

    with pytest.raises(NoStationsAvailable):
        create_incident(db, 7.49, 122.01, "Alarm 1")
    assert db.query(Incident).count() == 0


def test_forced_not_ready_station_fails_even_when_another_is_closer(db, seed):
    seed.station("A", *A_POS, readiness="READY", db=db)
    b = seed.station("B", *B_POS, readiness="NOT_READY", db=db)

    with pytest.raises(StationUnavailable):
        create_incident(db, 7.49, 122.01, "Alarm 1", forced_station_id=b)
    assert db.query(Incident).count() == 0


def test_not_ready_then_ready_returns_station_to_pool(db, seed):
    a = seed.station("A", *A_POS, db=db)
    uid = seed.user(f"admin-{a}", station_id=a, db=db)

    submit_readiness(db, a, uid, "NOT_READY", 10)
    assert list_ready_stations(db) == []

    submit_readiness(db, a, uid, "READY", 100)
    assert [s.station_id for s in list_ready_stations(db)] == [a]


def test_readiness_change_is_seen_by_selector_in_same_session(db, seed):
    a = seed.station("A", *A_POS, readiness="READY", db=db)
    b = seed.station("B", *B_POS, readiness="NOT_READY", db=db)
    assert select_station(db, 6.91, 122.08).station_id == a

    submit_readiness(db, b, f"admin-{b}", "READY", 100)

    d = select_station(db, 6.91, 122.08)
    assert d.station_id == b
    assert d.distance_km == pytest.approx(1.57, abs=0.05)


def test_two_alarm_level_changes_keep_initial_level(db, seed):
    seed.station("A", *A_POS, readiness="READY", db=db)
    inc = create_incident(db, 7.49, 122.01, "1st Alarm").incident

    change_alarm_level(db, inc.alarm_id, "2nd Alarm", "admin-1")
    change_alarm_level(db, inc.alarm_id, "Task Force Alpha", "admin-1")

    db.expire_all()
    stored = db.get(Incident, inc.alarm_id)
    assert stored.initial_alarm_level == "Alarm 1"
    assert stored.current_alarm_level == "Task Force Alpha"

    changes = [e for e in get_timeline(db, inc.alarm_id) if e.action_type == ALARM_LEVEL_CHANGE]
    assert len(changes) == 2
    assert (
        db.query(ResponseLogEntry)
        .filter(ResponseLogEntry.alarm_id == inc.alarm_id, ResponseLogEntry.action_type == ALARM_LEVEL_CHANGE)
        .count()
        == 2
    )
