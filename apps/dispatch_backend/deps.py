from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from common_core.rbac import has_perm
from common_core.security import verify_jwt

bearer = HTTPBearer(auto_error=False)


def _claims_to_user(claims: dict) -> dict:
    return {
        "sub": claims.get("sub"),
        "roles": claims.get("roles", []) or [],
    }


def get_user(creds: HTTPAuthorizationCredentials = Depends(bearer)):
    if not creds:
        raise HTTPException(status_code=401, detail="AUTH_REQUIRED")
    try:
        claims = verify_jwt(creds.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="AUTH_INVALID")
    return _claims_to_user(claims)


def get_optional_user(creds: HTTPAuthorizationCredentials = Depends(bearer)):
    # anonymous callers pass through; a token that is present must still be valid
    if not creds:
        return None
    return get_user(creds)


def require_perm(perm: str):
    def _inner(user=Depends(get_user)):
        if not has_perm(user["roles"], perm):
            raise HTTPException(status_code=403, detail="FORBIDDEN")
        return user

    return _inner
