from __future__ import annotations
import secrets
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminUser:
    name: str
    guard: str
    id: Optional[int] = None


def require_admin_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> AdminUser:
    """Admin session guard.

    Accepts a bearer token equal to ``admin_api_token``. Applications with a
    real user store replace this through ``app.dependency_overrides``.
    """
    settings = request.app.state.settings
    expected = settings.admin_api_token
    if credentials is None or not expected or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(status_code=401, detail="Unauthenticated", headers={"WWW-Authenticate": "Bearer"})
    return AdminUser(name="admin", guard=settings.auth_guard)
