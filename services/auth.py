"""
services/auth.py
────────────────────────────────────────────────────────────────────────
Bearer-token identity. Tokens are HS256 JWTs carrying `sub` (the user id)
and `role` ("client" | "coach" | "admin"). Issuing tokens for real users
is the identity provider's job; `create_token` exists for scripts/tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings

_ALGO = "HS256"
COACH_ROLES = frozenset({"coach", "admin"})

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str = "client"

    @property
    def is_coach(self) -> bool:
        return self.role in COACH_ROLES


def create_token(user_id: str, role: str = "client", ttl_minutes: int = 60) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
    payload = {"sub": user_id, "role": role, "exp": exp}
    return jwt.encode(payload, settings.jwt_secret, algorithm=_ALGO)


def verify_token(token: str) -> CurrentUser:
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[_ALGO])
    return CurrentUser(id=str(payload["sub"]), role=payload.get("role", "client"))


# ───────── FastAPI dependencies ──────────────────────────────────────
def current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> CurrentUser:
    if creds is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return verify_token(creds.credentials)
    except (jwt.PyJWTError, KeyError):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def require_coach(user: CurrentUser = Depends(current_user)) -> CurrentUser:
    if not user.is_coach:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return user


def resolve_target_user(user: CurrentUser, requested: str | None) -> str:
    """Clients act on themselves; only coaches may name another user."""
    if requested is None or requested == user.id:
        return user.id
    if not user.is_coach:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return requested
