from __future__ import annotations

from datetime import timedelta

import pytest

from apps.dispatch_backend.errors import Forbidden, NotFound, Unauthorized, ValidationError
from apps.dispatch_backend.models import ReadinessSubmission, Station
from apps.dispatch_backend.services import readiness
from apps.dispatch_backend.services.readiness import (
    get_latest_readiness,
    get_overview,
    list_ready_stations,
    submit_readiness,
)


def _station_with_admin(db, seed, name="Sub 1", lat=14.60, lon=120.98, station_type="Substation"):
    sid = seed.station(name, lat, lon, station_type=station_type, db=db)
    uid = seed.user(f"admin-{sid}", station_id=sid, full_name=f"{name} Admin", db=db)
    return sid, uid


def test_submission_flips_station_ready(db, seed):
    sid, uid = _station_with_admin(db, seed)
    assert db.get(Station, sid).is_ready is False

    sub = submit_readiness(db, sid, uid, "READY", 95, {"hose": True})

    st = db.get(Station, sid)
    assert st.is_ready is True
    assert st.last_status_update == sub.submitted_at
    assert [s.station_id for s in list_ready_stations(db)] == [sid]


def test_not_ready_removes_station_from_pool(db, seed):
    sid, uid = _station_with_admin(db, seed)
    submit_readiness(db, sid, uid, "READY", 100)
    submit_readiness(db, sid, uid, "NOT_READY", 20)

    assert db.get(Station, sid).is_ready is False
    assert list_ready_stations(db) == []


def test_latest_submission_wins_over_insertion_order(db, seed):
    sid, uid = _station_with_admin(db, seed)
    first = submit_readiness(db, sid, uid, "READY", 100)
    second = submit_readiness(db, sid, uid, "NOT_READY", 0)

    # backdate the newer row: the registry must follow submitted_at, not ids
    second.submitted_at = first.submitted_at - timedelta(minutes=5)
    db.flush()

    assert readiness.latest_submission(db, sid).readiness_id == first.readiness_id


def test_same_timestamp_tie_uses_highest_id(db, seed):
    sid, uid = _station_with_admin(db, seed)
    a = submit_readiness(db, sid, uid, "READY", 100)
    b = submit_readiness(db, sid, uid, "NOT_READY", 0)
    b.submitted_at = a.submitted_at
    db.flush()

    assert readiness.latest_submission(db, sid).readiness_id == b.readiness_id


def test_status_is_case_insensitive(db, seed):
    sid, uid = _station_with_admin(db, seed)
    sub = submit_readiness(db, sid, uid, " partially_ready ", 60)
    assert sub.status == "PARTIALLY_READY"
    assert db.get(Station, sid).is_ready is True


@pytest.mark.parametrize(
    "status,pct,checklist",
    [
        (None, 50, {}),
        ("", 50, {}),
        ("MAYBE", 50, {}),
        ("READY", None, {}),
        ("READY", 101, {}),
        ("READY", -1, {}),
        ("READY", 50.5, {}),
        ("READY", True, {}),
        ("READY", "80", {}),
        ("READY", 50, ["hose"]),
    ],
)
def test_invalid_submission_rejected(db, seed, status, pct, checklist):
    sid, uid = _station_with_admin(db, seed)
    with pytest.raises(ValidationError):
        submit_readiness(db, sid, uid, status, pct, checklist)
    assert db.query(ReadinessSubmission).count() == 0


def test_submitter_must_be_known(db, seed):
    sid, _ = _station_with_admin(db, seed)
    with pytest.raises(Unauthorized):
        submit_readiness(db, sid, None, "READY", 100)
    with pytest.raises(Unauthorized):
        submit_readiness(db, sid, "ghost", "READY", 100)


def test_other_stations_admin_is_forbidden(db, seed):
    sid, _ = _station_with_admin(db, seed, name="Sub 1")
    _, other_uid = _station_with_admin(db, seed, name="Sub 2")

    with pytest.raises(Forbidden):
        submit_readiness(db, sid, other_uid, "READY", 100)
    assert db.get(Station, sid).is_ready is False


def test_global_admin_is_not_exempt(db, seed):
    sid, _ = _station_with_admin(db, seed)
    boss = seed.user("boss", roles="admin", db=db)
    with pytest.raises(Forbidden):
        submit_readiness(db, sid, boss, "READY", 100)


def test_unknown_station(db, seed):
    _, uid = _station_with_admin(db, seed)
    with pytest.raises(NotFound):
        submit_readiness(db, 424242, uid, "READY", 100)


def test_submission_is_audited(db, seed):
    from apps.dispatch_backend.models import AuditLog

    sid, uid = _station_with_admin(db, seed)
    submit_readiness(db, sid, uid, "READY", 100, request_id="rid-1")
    entry = db.query(AuditLog).filter(AuditLog.action == "READINESS_SUBMIT").one()
    assert entry.entity_id == str(sid)
    assert entry.actor_user_id == uid
    assert entry.request_id == "rid-1"


def test_get_latest_readiness(db, seed):
    sid, uid = _station_with_admin(db, seed, name="Sub 7")
    with pytest.raises(NotFound):
        get_latest_readiness(db, sid)

    submit_readiness(db, sid, uid, "PARTIALLY_READY", 70, {"ladder": False})
    out = get_latest_readiness(db, sid)
    assert out["status"] == "PARTIALLY_READY"
    assert out["readiness_percentage"] == 70
    assert out["equipment_checklist"] == {"ladder": False}
    assert out["submitted_by"] == "Sub 7 Admin"


def test_overview_lists_every_station_main_first(db, seed):
    sub_a, uid_a = _station_with_admin(db, seed, name="Alpha Sub")
    _station_with_admin(db, seed, name="Beta Sub")
    main_id, main_uid = _station_with_admin(db, seed, name="Zulu Main", station_type="Main")

    submit_readiness(db, sub_a, uid_a, "READY", 100)
    submit_readiness(db, sub_a, uid_a, "NOT_READY", 10)
    submit_readiness(db, main_id, main_uid, "READY", 90)

    rows = get_overview(db)

    assert [r["station_name"] for r in rows] == ["Zulu Main", "Alpha Sub", "Beta Sub"]
    by_name = {r["station_name"]: r for r in rows}
    assert by_name["Alpha Sub"]["latest_status"] == "NOT_READY"
    assert by_name["Alpha Sub"]["latest_percentage"] == 10
    assert by_name["Alpha Sub"]["is_ready"] is False
    assert by_name["Alpha Sub"]["last_submitted_by"] == "Alpha Sub Admin"
    assert by_name["Beta Sub"]["latest_status"] == "UNKNOWN"
    assert by_name["Beta Sub"]["latest_percentage"] == 0
    assert by_name["Beta Sub"]["last_update"] is None
    assert by_name["Zulu Main"]["is_ready"] is True
