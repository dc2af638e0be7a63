from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from apps.dispatch_backend.runtime import sse_bus
from common_core.config import settings
from common_core.db import DispatchSessionLocal

log = logging.getLogger("firedispatch.health")
router = APIRouter(tags=["health"])


@router.get("/health/live")
def live():
    return {"ok": True}


@router.get("/health/ready")
def ready():
    db = DispatchSessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        log.exception("readiness_probe_failed")
        raise HTTPException(status_code=503, detail="DB_UNAVAILABLE") from e
    finally:
        db.close()
    return {"ok": True, "env": settings.app_env, "listeners": sse_bus.listener_count()}


@router.get("/healthz")
def healthz():
    return live()


@router.get("/readyz")
def readyz():
    return ready()
