from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from apps.dispatch_backend.errors import InvalidTransition, NotFound, PersistenceError, ValidationError
from apps.dispatch_backend.models import Incident, ResponseLogEntry
from apps.dispatch_backend.services import dispatch
from apps.dispatch_backend.services.audit import now_utc

log = logging.getLogger("firedispatch.incidents")

# -----------------------------
# Vocabulary
# -----------------------------

PENDING_DISPATCH = "Pending Dispatch"
DISPATCH_ON_THE_WAY = "Dispatch On the Way"
ONGOING_RESPONSE = "Ongoing Response"
FIRE_UNDER_CONTROL = "Fire Under Control"
RESOLVED = "Resolved"
CANCELLED = "Cancelled"

STATUS_FLOW = (PENDING_DISPATCH, DISPATCH_ON_THE_WAY, ONGOING_RESPONSE, FIRE_UNDER_CONTROL, RESOLVED)
TERMINAL_STATUSES = frozenset({RESOLVED, CANCELLED})
_STATUS_BY_KEY = {s.lower(): s for s in (*STATUS_FLOW, CANCELLED)}

INITIAL_DISPATCH = "Initial Dispatch"
RECEIVED_FROM_STATION = "Received from Station"
ALARM_LEVEL_CHANGE = "Alarm Level Change"
STATUS_CHANGE = "Status Change"

ALARM_LEVELS = (
    "Alarm 1",
    "Alarm 2",
    "Alarm 3",
    "Alarm 4",
    "Alarm 5",
    "Task Force Alpha",
    "Task Force Bravo",
    "Task Force Charlie",
    "Task Force Delta",
    "General Alarm",
)
_ALARM_BY_KEY = {a.lower(): a for a in ALARM_LEVELS}
_ORDINAL_ALARM = re.compile(r"^([1-5])(?:st|nd|rd|th)\s+alarm$", re.IGNORECASE)
_NUMBERED_ALARM = re.compile(r"^alarm\s*([1-5])$", re.IGNORECASE)


def _squash(raw: str) -> str:
    return " ".join(raw.split())


def normalize_alarm_level(raw: Any) -> str:
    """'3rd Alarm' / 'alarm 3' -> 'Alarm 3'; named levels matched case-insensitively."""
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("alarm_level is required")
    text = _squash(raw)
    m = _ORDINAL_ALARM.match(text) or _NUMBERED_ALARM.match(text)
    if m:
        return f"Alarm {m.group(1)}"
    level = _ALARM_BY_KEY.get(text.lower())
    if level is None:
        raise ValidationError(f"unknown alarm level: {text}")
    return level


def normalize_status(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("status is required")
    status = _STATUS_BY_KEY.get(_squash(raw).lower())
    if status is None:
        raise ValidationError(f"unknown status: {raw.strip()}")
    return status


def transition_applies(current: str, target: str) -> bool:
    """
    False when ``target`` equals ``current`` (re-applying a status is a no-op).

    Raises InvalidTransition for moves out of a terminal state or backwards
    along STATUS_FLOW. Skipping ahead is allowed; Cancelled is reachable
    from any non-terminal state.
    """
    if target == current:
        return False
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f"incident is {current}")
    if target == CANCELLED:
        return True
    if current in STATUS_FLOW and STATUS_FLOW.index(target) < STATUS_FLOW.index(current):
        raise InvalidTransition(f"cannot move from {current} back to {target}")
    return True


# -----------------------------
# Timeline
# -----------------------------


def append_response_log(
    db, alarm_id: int, action_type: str, details: str, actor_user_id: str | None
) -> ResponseLogEntry:
    entry = ResponseLogEntry(
        alarm_id=alarm_id,
        action_type=action_type,
        details=details[:1024] if details else None,
        performed_by_user_id=actor_user_id,
        action_timestamp=now_utc(),
    )
    db.add(entry)
    return entry


def _append_log_best_effort(
    db, alarm_id: int, action_type: str, details: str, actor_user_id: str | None
) -> bool:
    # Runs in a savepoint: a failed timeline write must not undo the incident row.
    try:
        with db.begin_nested():
            append_response_log(db, alarm_id, action_type, details, actor_user_id)
        return True
    except Exception:
        log.exception("response_log_append_failed", extra={"alarm_id": alarm_id})
        return False


def get_timeline(db, alarm_id: int) -> list[ResponseLogEntry]:
    return list(
        db.execute(
            select(ResponseLogEntry)
            .where(ResponseLogEntry.alarm_id == alarm_id)
            .order_by(ResponseLogEntry.action_timestamp.desc(), ResponseLogEntry.log_id.desc())
        ).scalars()
    )


# -----------------------------
# Lifecycle
# -----------------------------


@dataclass
class IncidentMeta:
    incident_type: str | None = None
    location: str | None = None
    narrative: str | None = None
    caller_phone: str | None = None
    end_user_id: str | None = None


@dataclass
class CreatedIncident:
    incident: Incident
    decision: dispatch.DispatchDecision
    log_recorded: bool


@dataclass
class IncidentUpdate:
    incident: Incident
    changed: bool
    log_recorded: bool


def _initial_details(meta: IncidentMeta, decision: dispatch.DispatchDecision) -> str:
    how = "forced" if decision.forced else "nearest ready"
    return (
        f"Incident: {meta.incident_type or 'Not specified'} | Location: {meta.location or ''} | "
        f"Narrative: {meta.narrative or 'No details'} | "
        f"Station {decision.station_id} ({how}, {decision.distance_km:.2f} km)"
    )


def create_incident(
    db,
    caller_lat,
    caller_lon,
    alarm_level: Any,
    meta: IncidentMeta | None = None,
    forced_station_id: int | None = None,
    actor_user_id: str | None = None,
    action_type: str = INITIAL_DISPATCH,
) -> CreatedIncident:
    meta = meta or IncidentMeta()
    level = normalize_alarm_level(alarm_level)

    # Raises before anything is written: no incident without a resolved station.
    decision = dispatch.select_station(db, caller_lat, caller_lon, forced_station_id)

    inc = Incident(
        end_user_id=meta.end_user_id,
        caller_phone=meta.caller_phone,
        incident_type=meta.incident_type,
        location_text=meta.location,
        narrative=meta.narrative,
        user_latitude=float(caller_lat),
        user_longitude=float(caller_lon),
        initial_alarm_level=level,
        current_alarm_level=level,
        status=PENDING_DISPATCH,
        call_time=now_utc(),
        dispatched_station_id=decision.station_id,
        dispatch_distance_km=decision.distance_km,
    )
    try:
        db.add(inc)
        db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError("INCIDENT_WRITE_FAILED") from e

    log_recorded = _append_log_best_effort(
        db, inc.alarm_id, action_type, _initial_details(meta, decision), actor_user_id
    )
    log.info(
        "incident_created",
        extra={
            "alarm_id": inc.alarm_id,
            "station_id": decision.station_id,
            "distance_km": round(decision.distance_km, 3),
            "actor": actor_user_id,
        },
    )
    return CreatedIncident(incident=inc, decision=decision, log_recorded=log_recorded)


def get_incident(db, alarm_id: int) -> Incident:
    inc = db.get(Incident, alarm_id)
    if inc is None:
        raise NotFound("INCIDENT_NOT_FOUND")
    return inc


def list_incidents(db, limit: int = 50) -> list[Incident]:
    return list(
        db.execute(
            select(Incident).order_by(Incident.call_time.desc(), Incident.alarm_id.desc()).limit(limit)
        ).scalars()
    )


def _flush_primary(db) -> None:
    try:
        db.flush()
    except SQLAlchemyError as e:
        raise PersistenceError("INCIDENT_UPDATE_FAILED") from e


def change_alarm_level(db, alarm_id: int, new_level: Any, actor_user_id: str | None) -> IncidentUpdate:
    inc = get_incident(db, alarm_id)
    level = normalize_alarm_level(new_level)
    if level == inc.current_alarm_level:
        return IncidentUpdate(incident=inc, changed=False, log_recorded=False)
    if inc.status in TERMINAL_STATUSES:
        raise InvalidTransition(f"incident is {inc.status}")

    old = inc.current_alarm_level
    inc.current_alarm_level = level
    _flush_primary(db)

    log_recorded = _append_log_best_effort(
        db, inc.alarm_id, ALARM_LEVEL_CHANGE, f"Changed from {old} to {level}", actor_user_id
    )
    log.info("alarm_level_changed", extra={"alarm_id": inc.alarm_id, "actor": actor_user_id})
    return IncidentUpdate(incident=inc, changed=True, log_recorded=log_recorded)


def change_status(
    db, alarm_id: int, new_status: Any, actor_user_id: str | None, note: str | None = None
) -> IncidentUpdate:
    inc = get_incident(db, alarm_id)
    target = normalize_status(new_status)
    if not transition_applies(inc.status, target):
        return IncidentUpdate(incident=inc, changed=False, log_recorded=False)

    old = inc.status
    now = now_utc()
    inc.status = target
    if target == DISPATCH_ON_THE_WAY and inc.dispatch_time is None:
        inc.dispatch_time = now
    if target in TERMINAL_STATUSES and inc.resolve_time is None:
        inc.resolve_time = now
    _flush_primary(db)

    details = f"{old} -> {target}" + (f" | {note}" if note else "")
    log_recorded = _append_log_best_effort(db, inc.alarm_id, STATUS_CHANGE, details, actor_user_id)
    log.info(
        "incident_status_changed",
        extra={"alarm_id": inc.alarm_id, "status": target, "actor": actor_user_id},
    )
    return IncidentUpdate(incident=inc, changed=True, log_recorded=log_recorded)
