from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from apps.dispatch_backend.deps import get_optional_user, require_perm
from apps.dispatch_backend.errors import DispatchError
from apps.dispatch_backend.runtime import sse_bus
from apps.dispatch_backend.services import incidents, notify
from apps.dispatch_backend.services.audit import iso_z
from common_core.db import DispatchSessionLocal

log = logging.getLogger("firedispatch.api.incidents")
router = APIRouter(prefix="/incidents", tags=["incidents"])


# Coordinates, alarm level and forced station stay untyped here: the
# service owns their validation so bad values surface as VALIDATION_ERROR.
class CreateIncidentIn(BaseModel):
    latitude: Any = None
    longitude: Any = None
    alarm_level: Any = None
    incident_type: Optional[str] = Field(default=None, max_length=128)
    location: Optional[str] = Field(default=None, max_length=512)
    narrative: Optional[str] = Field(default=None, max_length=4000)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    end_user_id: Optional[str] = Field(default=None, max_length=64)
    force_station_id: Any = None


class AlarmLevelIn(BaseModel):
    alarm_level: Any = None


class StatusIn(BaseModel):
    status: Any = None
    note: Optional[str] = Field(default=None, max_length=512)


def incident_to_dict(inc) -> dict:
    return {
        "alarm_id": inc.alarm_id,
        "end_user_id": inc.end_user_id,
        "caller_phone": inc.caller_phone,
        "incident_type": inc.incident_type,
        "location": inc.location_text,
        "narrative": inc.narrative,
        "latitude": inc.user_latitude,
        "longitude": inc.user_longitude,
        "initial_alarm_level": inc.initial_alarm_level,
        "current_alarm_level": inc.current_alarm_level,
        "status": inc.status,
        "call_time": iso_z(inc.call_time),
        "dispatch_time": iso_z(inc.dispatch_time),
        "resolve_time": iso_z(inc.resolve_time),
        "dispatched_station_id": inc.dispatched_station_id,
        "dispatched_truck_id": inc.dispatched_truck_id,
        "dispatch_distance_km": inc.dispatch_distance_km,
    }


def _log_entry_to_dict(e) -> dict:
    return {
        "log_id": e.log_id,
        "action_type": e.action_type,
        "details": e.details,
        "performed_by": e.performed_by_user_id,
        "action_timestamp": iso_z(e.action_timestamp),
    }


def _create(body: CreateIncidentIn, actor_id: Optional[str], end_user_id: Optional[str], action_type: str):
    db = DispatchSessionLocal()
    try:
        res = incidents.create_incident(
            db,
            body.latitude,
            body.longitude,
            body.alarm_level,
            meta=incidents.IncidentMeta(
                incident_type=body.incident_type,
                location=body.location,
                narrative=body.narrative,
                caller_phone=body.phone_number,
                end_user_id=end_user_id,
            ),
            forced_station_id=body.force_station_id,
            actor_user_id=actor_id,
            action_type=action_type,
        )
        db.commit()

        inc, d = res.incident, res.decision
        notified = notify.announce_dispatch(sse_bus, inc)
        return {
            "alarmId": inc.alarm_id,
            "dispatchedStationId": d.station_id,
            "distanceKm": d.distance_km,
            "candidates": [{"stationId": c.station_id, "distanceKm": c.distance_km} for c in d.candidates],
            "withinRadius": d.within_radius,
            "maxRadiusKm": d.max_radius_km,
            "status": inc.status,
            "alarmLevel": inc.initial_alarm_level,
            "logRecorded": res.log_recorded,
            "notified": notified,
        }
    except DispatchError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        log.exception("incident_create_failed")
        raise HTTPException(status_code=500, detail="INTERNAL_ERROR") from e
    finally:
        db.close()


@router.post("/enduser/create-alarm", status_code=201)
def enduser_create_alarm(body: CreateIncidentIn, user=Depends(get_optional_user)):
    # callers may be anonymous; a signed-in caller is recorded as the reporter
    actor_id = user["sub"] if user else None
    return _create(body, actor_id, actor_id or body.end_user_id, incidents.INITIAL_DISPATCH)


@router.post("", status_code=201)
def create_incident(body: CreateIncidentIn, user=Depends(require_perm("incident.create"))):
    return _create(body, user["sub"], body.end_user_id, incidents.INITIAL_DISPATCH)


@router.post("/relay", status_code=201)
def relay_incident(body: CreateIncidentIn, user=Depends(require_perm("incident.create"))):
    return _create(body, user["sub"], body.end_user_id, incidents.RECEIVED_FROM_STATION)


@router.get("")
def list_incidents(user=Depends(require_perm("incident.view"))):
    db = DispatchSessionLocal()
    try:
        return [incident_to_dict(i) for i in incidents.list_incidents(db, limit=50)]
    finally:
        db.close()


@router.get("/{alarm_id}")
def get_incident(alarm_id: int, user=Depends(require_perm("incident.view"))):
    db = DispatchSessionLocal()
    try:
        inc = incidents.get_incident(db, alarm_id)
        return {
            **incident_to_dict(inc),
            "timeline": [_log_entry_to_dict(e) for e in incidents.get_timeline(db, alarm_id)],
        }
    finally:
        db.close()


def _apply_update(alarm_id: int, op, value, actor_id: str, **kw):
    db = DispatchSessionLocal()
    try:
        res = op(db, alarm_id, value, actor_id, **kw)
        db.commit()
        notified = notify.announce_update(sse_bus, res.incident) if res.changed else False
        return {
            **incident_to_dict(res.incident),
            "changed": res.changed,
            "log_recorded": res.log_recorded,
            "notified": notified,
        }
    except DispatchError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        log.exception("incident_update_failed", extra={"alarm_id": alarm_id})
        raise HTTPException(status_code=500, detail="INTERNAL_ERROR") from e
    finally:
        db.close()


@router.patch("/{alarm_id}/alarm-level")
def change_alarm_level(alarm_id: int, body: AlarmLevelIn, user=Depends(require_perm("incident.update"))):
    return _apply_update(alarm_id, incidents.change_alarm_level, body.alarm_level, user["sub"])


@router.patch("/{alarm_id}/status")
def change_status(alarm_id: int, body: StatusIn, user=Depends(require_perm("incident.update"))):
    return _apply_update(alarm_id, incidents.change_status, body.status, user["sub"], note=body.note)
