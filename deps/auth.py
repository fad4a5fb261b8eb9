# deps/auth.py
from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from security import ROLE_ADMIN, decode_token
from settings import settings

bearer = HTTPBearer(auto_error=False)

DEV_USER_ID = "dev"


class CurrentUser:
    def __init__(self, user_id: str, role: str):
        self.user_id = user_id
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> CurrentUser:
    if not settings.AUTH_REQUIRED:
        # local/dev: portal runs without an auth provider
        return CurrentUser(user_id=DEV_USER_ID, role=ROLE_ADMIN)

    if not creds:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    # must be "Bearer"
    if (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    payload = decode_token(creds.credentials)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")
    return CurrentUser(user_id=str(sub), role=str(payload.get("role") or "").upper())


def ensure_partner_access(user: CurrentUser, partner_id: str) -> None:
    """Partners only see their own payouts; admins see everyone's."""
    if user.is_admin:
        return
    if user.user_id != partner_id:
        raise HTTPException(status_code=403, detail="FORBIDDEN")
