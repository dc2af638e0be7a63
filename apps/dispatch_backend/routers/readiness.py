from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from apps.dispatch_backend.deps import require_perm
from apps.dispatch_backend.errors import DispatchError
from apps.dispatch_backend.services import readiness
from apps.dispatch_backend.services.audit import iso_z
from common_core.db import DispatchSessionLocal

log = logging.getLogger("firedispatch.api.readiness")
router = APIRouter(prefix="/readiness", tags=["readiness"])


class ReadinessIn(BaseModel):
    station_id: int
    status: Any = None
    readiness_percentage: Any = None
    equipment_checklist: Any = None


@router.post("", status_code=201)
def submit(body: ReadinessIn, request: Request, user=Depends(require_perm("readiness.submit"))):
    db = DispatchSessionLocal()
    try:
        sub = readiness.submit_readiness(
            db,
            body.station_id,
            user["sub"],
            body.status,
            body.readiness_percentage,
            body.equipment_checklist,
            getattr(request.state, "request_id", None),
        )
        db.commit()
        return {
            "ok": True,
            "readiness_id": sub.readiness_id,
            "station_id": sub.station_id,
            "status": sub.status,
            "readiness_percentage": sub.readiness_percentage,
            "is_ready": readiness.derive_is_ready(sub.status),
            "submitted_at": iso_z(sub.submitted_at),
        }
    except DispatchError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        log.exception("readiness_submit_failed", extra={"station_id": body.station_id})
        raise HTTPException(status_code=500, detail="INTERNAL_ERROR") from e
    finally:
        db.close()


@router.get("/ready-stations")
def ready_stations():
    db = DispatchSessionLocal()
    try:
        return [
            {"station_id": s.station_id, "latitude": s.latitude, "longitude": s.longitude}
            for s in readiness.list_ready_stations(db)
        ]
    finally:
        db.close()


@router.get("/overview")
def overview(user=Depends(require_perm("readiness.view"))):
    db = DispatchSessionLocal()
    try:
        return readiness.get_overview(db)
    finally:
        db.close()


@router.get("/{station_id}")
def latest_for_station(station_id: int, user=Depends(require_perm("readiness.view"))):
    db = DispatchSessionLocal()
    try:
        return readiness.get_latest_readiness(db, station_id)
    finally:
        db.close()
