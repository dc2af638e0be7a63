"""
Readiness registry.

Stations self-report readiness as an append-only log of submissions. The
station's ``is_ready`` flag is never set directly: it is re-derived from
the latest submission (by ``submitted_at``, ties broken by the highest
``readiness_id``) in the same transaction that appends it, so the
dispatch candidate pool always reflects the most recent report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError

from apps.dispatch_backend.errors import Forbidden, NotFound, PersistenceError, Unauthorized, ValidationError
from apps.dispatch_backend.models import ReadinessSubmission, Station, User
from apps.dispatch_backend.services.audit import audit_write, iso_z, now_utc

log = logging.getLogger("firedispatch.readiness")

READY = "READY"
PARTIALLY_READY = "PARTIALLY_READY"
NOT_READY = "NOT_READY"
READINESS_STATUSES = (READY, PARTIALLY_READY, NOT_READY)

# PARTIALLY_READY stations still take calls
DISPATCHABLE_STATUSES = frozenset({READY, PARTIALLY_READY})


@dataclass(frozen=True)
class StationPoint:
    station_id: int
    latitude: float
    longitude: float


def derive_is_ready(latest_status: str | None) -> bool:
    return latest_status in DISPATCHABLE_STATUSES


def _validate_submission(status: Any, percentage: Any, checklist: Any) -> tuple[str, int, dict]:
    if not isinstance(status, str) or not status.strip():
        raise ValidationError("status is required")
    norm = status.strip().upper()
    if norm not in READINESS_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(READINESS_STATUSES)}")

    if percentage is None:
        raise ValidationError("readiness_percentage is required")
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        raise ValidationError("readiness_percentage must be an integer")
    if not 0 <= percentage <= 100:
        raise ValidationError("readiness_percentage must be between 0 and 100")

    if checklist is None:
        checklist = {}
    if not isinstance(checklist, dict):
        raise ValidationError("equipment_checklist must be an object")
    return norm, percentage, checklist


def _latest_first():
    return (ReadinessSubmission.submitted_at.desc(), ReadinessSubmission.readiness_id.desc())


def latest_submission(db, station_id: int) -> ReadinessSubmission | None:
    return db.execute(
        select(ReadinessSubmission)
        .where(ReadinessSubmission.station_id == station_id)
        .order_by(*_latest_first())
        .limit(1)
    ).scalar_one_or_none()


def submit_readiness(
    db,
    station_id: int,
    submitter_id: str | None,
    status: Any,
    percentage: Any,
    checklist: Any = None,
    request_id: str | None = None,
) -> ReadinessSubmission:
    norm_status, pct, checklist = _validate_submission(status, percentage, checklist)

    if not submitter_id:
        raise Unauthorized("SUBMITTER_REQUIRED")
    submitter = db.get(User, submitter_id)
    if submitter is None:
        raise Unauthorized("SUBMITTER_UNKNOWN")

    station = db.get(Station, station_id)
    if station is None:
        raise NotFound("STATION_NOT_FOUND")
    if submitter.assigned_station_id != station.station_id:
        raise Forbidden("NOT_STATION_ADMIN")

    now = now_utc()
    sub = ReadinessSubmission(
        station_id=station.station_id,
        submitted_by_user_id=submitter.id,
        status=norm_status,
        readiness_percentage=pct,
        equipment_checklist=checklist,
        submitted_at=now,
    )
    try:
        db.add(sub)
        db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError("READINESS_WRITE_FAILED") from e

    latest = latest_submission(db, station.station_id)
    station.is_ready = derive_is_ready(latest.status if latest else None)
    station.last_status_update = now

    audit_write(
        db,
        "READINESS_SUBMIT",
        "station",
        station.station_id,
        {"status": norm_status, "percentage": pct, "readiness_id": sub.readiness_id},
        submitter.id,
        request_id,
    )
    # autoflush is off; later reads in this session must see is_ready
    try:
        db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError("READINESS_WRITE_FAILED") from e
    log.info(
        "readiness_submitted",
        extra={"station_id": station.station_id, "status": norm_status, "actor": submitter.id},
    )
    return sub


def list_ready_stations(db) -> list[StationPoint]:
    """Current dispatch candidate pool, in ascending station_id order."""
    rows = db.execute(
        select(Station.station_id, Station.latitude, Station.longitude)
        .where(Station.is_ready.is_(True))
        .order_by(Station.station_id)
    ).all()
    return [StationPoint(station_id=sid, latitude=lat, longitude=lon) for sid, lat, lon in rows]


def get_latest_readiness(db, station_id: int) -> dict:
    station = db.get(Station, station_id)
    if station is None:
        raise NotFound("STATION_NOT_FOUND")
    sub = latest_submission(db, station_id)
    if sub is None:
        raise NotFound("NO_READINESS_RECORD")
    submitter = db.get(User, sub.submitted_by_user_id)
    return {
        "readiness_id": sub.readiness_id,
        "station_id": station.station_id,
        "station_name": station.station_name,
        "status": sub.status,
        "readiness_percentage": sub.readiness_percentage,
        "equipment_checklist": sub.equipment_checklist or {},
        "submitted_by": (submitter.full_name or submitter.id) if submitter else sub.submitted_by_user_id,
        "submitted_at": iso_z(sub.submitted_at),
    }


def get_overview(db) -> list[dict]:
    ranked = select(
        ReadinessSubmission,
        func.row_number()
        .over(partition_by=ReadinessSubmission.station_id, order_by=list(_latest_first()))
        .label("rn"),
    ).subquery()
    latest = select(ranked).where(ranked.c.rn == 1).subquery()

    rows = db.execute(
        select(Station, latest.c.status, latest.c.readiness_percentage, latest.c.submitted_at, User)
        .outerjoin(latest, latest.c.station_id == Station.station_id)
        .outerjoin(User, User.id == latest.c.submitted_by_user_id)
        .order_by(case((Station.station_type == "Main", 0), else_=1), Station.station_name)
    ).all()

    return [
        {
            "station_id": st.station_id,
            "station_name": st.station_name,
            "station_type": st.station_type,
            "is_ready": bool(st.is_ready),
            "latest_status": status or "UNKNOWN",
            "latest_percentage": pct if pct is not None else 0,
            "last_submitted_by": (u.full_name or u.id) if u else None,
            "last_update": iso_z(submitted_at),
            "last_status_update": iso_z(st.last_status_update),
        }
        for st, status, pct, submitted_at, u in rows
    ]
