from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy import select

from apps.dispatch_backend.deps import require_perm
from apps.dispatch_backend.models import Station, User
from apps.dispatch_backend.security_rate_limit import login_throttle
from common_core.db import DispatchSessionLocal
from common_core.passwords import WeakPinError, hash_pin, verify_pin
from common_core.rbac import ROLE_PERMS, parse_roles
from common_core.security import issue_jwt

log = logging.getLogger("firedispatch.auth")
router = APIRouter(prefix="/auth", tags=["auth"])


class LoginIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    pin: str = Field(min_length=4, max_length=32)


@router.post("/login")
def login(body: LoginIn, request: Request):
    ip = request.client.host if request.client else "unknown"
    if not login_throttle.allow(ip, body.username):
        raise HTTPException(status_code=429, detail="RATE_LIMITED")

    db = DispatchSessionLocal()
    try:
        u = db.execute(select(User).where(User.id == body.username)).scalar_one_or_none()
        if not u or not verify_pin(body.pin, u.pin_hash):
            login_throttle.record_failure(ip, body.username)
            log.warning("login_failed", extra={"actor": body.username})
            raise HTTPException(status_code=401, detail="INVALID_CREDENTIALS")

        login_throttle.reset(ip, body.username)
        roles = parse_roles(u.roles)
        return {
            "token": issue_jwt(sub=u.id, roles=roles, station_id=u.assigned_station_id),
            "roles": roles,
            "station_id": u.assigned_station_id,
        }
    finally:
        db.close()


class CreateUserIn(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    pin: str = Field(min_length=6, max_length=32)
    full_name: Optional[str] = Field(default=None, max_length=128)
    roles: str = Field(default="substation_admin", max_length=256)
    assigned_station_id: Optional[int] = None


@router.post("/users", status_code=201)
def create_user(body: CreateUserIn, user=Depends(require_perm("users.manage"))):
    roles = parse_roles(body.roles)
    if not roles or any(r not in ROLE_PERMS for r in roles):
        raise HTTPException(status_code=400, detail="INVALID_ROLES")

    db = DispatchSessionLocal()
    try:
        if db.get(User, body.username):
            raise HTTPException(status_code=409, detail="USER_EXISTS")
        if body.assigned_station_id is not None and db.get(Station, body.assigned_station_id) is None:
            raise HTTPException(status_code=404, detail="STATION_NOT_FOUND")
        try:
            pin_hash = hash_pin(body.pin)
        except WeakPinError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        db.add(
            User(
                id=body.username,
                full_name=body.full_name,
                pin_hash=pin_hash,
                roles=",".join(roles),
                assigned_station_id=body.assigned_station_id,
            )
        )
        db.commit()
        log.info("user_created", extra={"actor": user["sub"], "station_id": body.assigned_station_id})
        return {"ok": True, "username": body.username, "roles": roles, "assigned_station_id": body.assigned_station_id}
    finally:
        db.close()
