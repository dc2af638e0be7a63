from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from apps.dispatch_backend import models
from apps.dispatch_backend.errors import DispatchError
from apps.dispatch_backend.routers.auth import router as auth_router
from apps.dispatch_backend.routers.bootstrap import router as bootstrap_router
from apps.dispatch_backend.routers.health import router as health_router
from apps.dispatch_backend.routers.incidents import router as incidents_router
from apps.dispatch_backend.routers.readiness import router as readiness_router
from apps.dispatch_backend.routers.realtime import router as realtime_router
from apps.dispatch_backend.routers.stations import router as stations_router
from common_core.config import settings
from common_core.db import DispatchSessionLocal
from common_core.guardrails import validate_runtime_settings
from common_core.logging_setup import configure_logging
from common_core.passwords import hash_pin
from common_core.request_id import RequestIdMiddleware

log = logging.getLogger("firedispatch.app")

app = FastAPI(title="FireDispatch Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestIdMiddleware)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(bootstrap_router)
app.include_router(stations_router)
app.include_router(readiness_router)
app.include_router(incidents_router)
app.include_router(realtime_router)


@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    if exc.http_status >= 500:
        log.error("dispatch_error", extra={"error": exc.code, "path": request.url.path})
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message, "code": exc.code})


def _bootstrap_admin_if_env_present() -> None:
    username = (os.environ.get("BOOTSTRAP_ADMIN_USERNAME") or "").strip().lower()
    pin = (os.environ.get("BOOTSTRAP_ADMIN_PIN") or "").strip()

    if not username and not pin:
        return
    if not username or not pin:
        raise RuntimeError("BOOTSTRAP_ADMIN_USERNAME and BOOTSTRAP_ADMIN_PIN must both be set")
    if len(username) < 3:
        raise RuntimeError("BOOTSTRAP_ADMIN_USERNAME must be at least 3 characters")

    db = DispatchSessionLocal()
    try:
        # only once: any existing user means bootstrap already happened
        if db.execute(select(models.User.id).limit(1)).first():
            return
        db.add(models.User(id=username, pin_hash=hash_pin(pin), roles="admin"))
        db.commit()
        log.warning("bootstrap_admin_created", extra={"actor": username})
    finally:
        db.close()


@app.on_event("startup")
def startup() -> None:
    configure_logging(component="dispatch_backend")
    validate_runtime_settings()

    # Schema is owned by Alembic migrations; no create_all here.
    try:
        _bootstrap_admin_if_env_present()
    except Exception as e:
        # tables may not exist until `alembic upgrade head` has run
        log.warning("bootstrap_skipped_or_failed", extra={"error": str(e)})

    log.info("dispatch_started", extra={"component": settings.app_env})
