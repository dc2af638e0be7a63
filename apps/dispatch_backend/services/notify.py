from __future__ import annotations

import logging

from apps.dispatch_backend.models import Incident
from common_core.realtime.sse_bus import SseBus

log = logging.getLogger("firedispatch.notify")

INCIDENT_CREATED = "incident-created"
INCIDENT_DISPATCHED = "incident-dispatched"
INCIDENT_UPDATED = "incident-updated"


def station_room(station_id: int) -> str:
    return f"station-{station_id}"


def incident_payload(inc: Incident) -> dict:
    return {
        "alarmId": inc.alarm_id,
        "dispatchedStationId": inc.dispatched_station_id,
        "callerLocation": {"latitude": inc.user_latitude, "longitude": inc.user_longitude},
        "alarmLevel": inc.initial_alarm_level,
        "status": inc.status,
    }


def announce_dispatch(bus: SseBus, inc: Incident) -> bool:
    """Room event for the dispatched station plus a broadcast to every console. Never raises."""
    payload = incident_payload(inc)
    try:
        bus.emit_to(station_room(inc.dispatched_station_id), INCIDENT_DISPATCHED, payload)
        bus.broadcast(INCIDENT_CREATED, payload)
        return True
    except Exception:
        log.exception(
            "notify_failed",
            extra={"alarm_id": inc.alarm_id, "station_id": inc.dispatched_station_id},
        )
        return False


def announce_update(bus: SseBus, inc: Incident) -> bool:
    payload = {**incident_payload(inc), "currentAlarmLevel": inc.current_alarm_level}
    try:
        bus.emit_to(station_room(inc.dispatched_station_id), INCIDENT_UPDATED, payload)
        bus.broadcast(INCIDENT_UPDATED, payload)
        return True
    except Exception:
        log.exception(
            "notify_failed",
            extra={"alarm_id": inc.alarm_id, "station_id": inc.dispatched_station_id},
        )
        return False
