"""
Station registry.

Exactly one ``Main`` station is expected. While none exists, the first
``Main`` can be registered without a session (initial site setup); after
that every create, update and delete needs an ``admin``. The readiness
columns are never written here.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select, update

from apps.dispatch_backend.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from apps.dispatch_backend.models import Incident, ReadinessSubmission, Station, User
from apps.dispatch_backend.services.audit import audit_write, iso_z, now_utc
from common_core.geo import is_valid_coordinate

log = logging.getLogger("firedispatch.stations")

MAIN = "Main"
SUBSTATION = "Substation"
STATION_TYPES = (MAIN, SUBSTATION)

_TEXT_FIELDS = {"station_name": 128, "province": 128, "city": 128, "contact_number": 32}


def _is_admin(actor: dict | None) -> bool:
    return bool(actor) and "admin" in (actor.get("roles") or [])


def _require_admin(actor: dict | None) -> None:
    if not actor:
        raise Unauthorized()
    if not _is_admin(actor):
        raise Forbidden()


def _clean_text(name: str, value: Any, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{name} is required")
    if len(value) > _TEXT_FIELDS[name]:
        raise ValidationError(f"{name} is too long")
    return value or None


def _normalize_type(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("station_type is required")
    for t in STATION_TYPES:
        if raw.strip().lower() == t.lower():
            return t
    raise ValidationError("station_type must be Main or Substation")


def station_to_dict(st: Station) -> dict:
    return {
        "station_id": st.station_id,
        "station_name": st.station_name,
        "station_type": st.station_type,
        "latitude": st.latitude,
        "longitude": st.longitude,
        "province": st.province,
        "city": st.city,
        "contact_number": st.contact_number,
        "is_ready": bool(st.is_ready),
        "last_status_update": iso_z(st.last_status_update),
    }


def _main_exists(db) -> bool:
    return db.execute(select(Station.station_id).where(Station.station_type == MAIN).limit(1)).first() is not None


def create_station(
    db,
    actor: dict | None,
    station_name: Any,
    latitude: Any,
    longitude: Any,
    station_type: Any,
    province: Any = None,
    city: Any = None,
    contact_number: Any = None,
    request_id: str | None = None,
) -> Station:
    name = _clean_text("station_name", station_name, required=True)
    stype = _normalize_type(station_type)
    if not is_valid_coordinate(latitude, longitude):
        raise ValidationError("latitude and longitude must be finite numbers within range")

    # the first Main is registered during initial site setup, before any admin exists
    if stype != MAIN or _main_exists(db):
        _require_admin(actor)
        if stype == MAIN:
            log.warning("additional_main_station", extra={"actor": actor.get("sub")})

    st = Station(
        station_name=name,
        station_type=stype,
        latitude=float(latitude),
        longitude=float(longitude),
        province=_clean_text("province", province),
        city=_clean_text("city", city),
        contact_number=_clean_text("contact_number", contact_number),
        is_ready=False,
        created_at_utc=now_utc(),
    )
    db.add(st)
    db.flush()

    actor_id = actor.get("sub") if actor else None
    audit_write(db, "STATION_CREATE", "station", st.station_id, {"name": name, "type": stype}, actor_id, request_id)
    log.info("station_created", extra={"station_id": st.station_id, "actor": actor_id})
    return st


def get_station(db, station_id: int) -> Station:
    st = db.get(Station, station_id)
    if st is None:
        raise NotFound("STATION_NOT_FOUND")
    return st


def list_stations(db) -> list[Station]:
    return list(db.execute(select(Station).order_by(Station.station_id)).scalars())


def update_station(
    db, actor: dict | None, station_id: int, fields: dict[str, Any], request_id: str | None = None
) -> Station:
    _require_admin(actor)
    st = get_station(db, station_id)

    if not fields:
        raise ValidationError("nothing to update")
    unknown = set(fields) - {*_TEXT_FIELDS, "station_type", "latitude", "longitude"}
    if unknown:
        raise ValidationError(f"fields not updatable: {', '.join(sorted(unknown))}")

    if ("latitude" in fields) != ("longitude" in fields):
        raise ValidationError("latitude and longitude must be updated together")
    if "latitude" in fields:
        if not is_valid_coordinate(fields["latitude"], fields["longitude"]):
            raise ValidationError("latitude and longitude must be finite numbers within range")
        st.latitude = float(fields["latitude"])
        st.longitude = float(fields["longitude"])

    if "station_type" in fields:
        st.station_type = _normalize_type(fields["station_type"])
    for name in _TEXT_FIELDS:
        if name in fields:
            setattr(st, name, _clean_text(name, fields[name], required=name == "station_name"))

    db.flush()
    audit_write(db, "STATION_UPDATE", "station", st.station_id, {"fields": sorted(fields)}, actor.get("sub"), request_id)
    log.info("station_updated", extra={"station_id": st.station_id, "actor": actor.get("sub")})
    return st


def delete_station(db, actor: dict | None, station_id: int, request_id: str | None = None) -> None:
    _require_admin(actor)
    st = get_station(db, station_id)

    refs = db.execute(
        select(func.count()).select_from(Incident).where(Incident.dispatched_station_id == station_id)
    ).scalar_one()
    if refs:
        raise Conflict("STATION_HAS_INCIDENTS")

    db.execute(delete(ReadinessSubmission).where(ReadinessSubmission.station_id == station_id))
    db.execute(update(User).where(User.assigned_station_id == station_id).values(assigned_station_id=None))
    db.delete(st)
    db.flush()
    audit_write(db, "STATION_DELETE", "station", station_id, {"name": st.station_name}, actor.get("sub"), request_id)
    log.info("station_deleted", extra={"station_id": station_id, "actor": actor.get("sub")})
