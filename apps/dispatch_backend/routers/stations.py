from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel

from apps.dispatch_backend.deps import get_optional_user, get_user
from apps.dispatch_backend.errors import DispatchError
from apps.dispatch_backend.services import stations
from common_core.db import DispatchSessionLocal

log = logging.getLogger("firedispatch.api.stations")
router = APIRouter(prefix="/stations", tags=["stations"])


class StationIn(BaseModel):
    station_name: Any = None
    latitude: Any = None
    longitude: Any = None
    station_type: Any = None
    province: Optional[str] = None
    city: Optional[str] = None
    contact_number: Optional[str] = None


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _write(fn, *args):
    db = DispatchSessionLocal()
    try:
        out = fn(db, *args)
        db.commit()
        return out
    except DispatchError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        log.exception("station_write_failed")
        raise HTTPException(status_code=500, detail="INTERNAL_ERROR") from e
    finally:
        db.close()


@router.get("")
def list_all():
    db = DispatchSessionLocal()
    try:
        return [stations.station_to_dict(s) for s in stations.list_stations(db)]
    finally:
        db.close()


@router.get("/{station_id}")
def get_one(station_id: int):
    db = DispatchSessionLocal()
    try:
        return stations.station_to_dict(stations.get_station(db, station_id))
    finally:
        db.close()


@router.post("", status_code=201)
def create(body: StationIn, request: Request, user=Depends(get_optional_user)):
    def _op(db):
        return stations.station_to_dict(
            stations.create_station(
                db,
                user,
                body.station_name,
                body.latitude,
                body.longitude,
                body.station_type,
                province=body.province,
                city=body.city,
                contact_number=body.contact_number,
                request_id=_rid(request),
            )
        )

    return _write(_op)


@router.put("/{station_id}")
def update(station_id: int, request: Request, body: dict[str, Any] = Body(...), user=Depends(get_user)):
    return _write(
        lambda db: stations.station_to_dict(
            stations.update_station(db, user, station_id, body, request_id=_rid(request))
        )
    )


@router.delete("/{station_id}")
def delete(station_id: int, request: Request, user=Depends(get_user)):
    _write(lambda db: stations.delete_station(db, user, station_id, request_id=_rid(request)))
    return {"ok": True, "station_id": station_id}
