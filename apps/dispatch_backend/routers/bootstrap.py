from __future__ import annotations

import os

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy import select

from apps.dispatch_backend.models import User
from apps.dispatch_backend.services.audit import iso_z, now_utc
from common_core.db import DispatchSessionLocal
from common_core.passwords import WeakPinError, hash_pin

router = APIRouter(prefix="/bootstrap", tags=["bootstrap"])


class BootstrapAdminIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    pin: str = Field(min_length=6, max_length=32)
    full_name: str | None = Field(default=None, max_length=128)


@router.post("/create-admin")
def create_admin(body: BootstrapAdminIn, request: Request):
    token = request.headers.get("X-Bootstrap-Token") or ""
    expected = os.environ.get("BOOTSTRAP_TOKEN") or ""
    if not expected or token != expected:
        raise HTTPException(status_code=403, detail="BOOTSTRAP_FORBIDDEN")

    db = DispatchSessionLocal()
    try:
        any_user = db.execute(select(User).limit(1)).scalar_one_or_none()
        if any_user:
            raise HTTPException(status_code=409, detail="BOOTSTRAP_ALREADY_DONE")
        try:
            pin_hash = hash_pin(body.pin)
        except WeakPinError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        db.add(User(id=body.username, full_name=body.full_name, pin_hash=pin_hash, roles="admin"))
        db.commit()
        return {"ok": True, "created_at_utc": iso_z(now_utc())}
    finally:
        db.close()
