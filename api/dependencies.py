"""
api/dependencies.py -- FastAPI Depends() helpers for the acting user.

Authentication happens upstream (gateway / session layer). By the time a
request reaches this service the acting user id is carried in X-User-Id as
an opaque string. This module only reads it:

  get_user_id()   -- 401 when the header is missing or blank
  require_admin() -- 401 as above, 403 when the user is not an admin

A missing header is an authentication failure (401), never an authorization
failure (403).
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from ownership.orchestrator import OwnershipOrchestrator
from ownership.roles import AdminResolver
from records.users import UserDirectory

USER_ID_HEADER = "X-User-Id"


def get_user_id(request: Request) -> str:
    """Return the trimmed X-User-Id header or raise HTTP 401.

    Use as a FastAPI dependency:
        @router.get("/todos")
        def route(user_id: str = Depends(get_user_id)): ...
    """
    user_id = request.headers.get(USER_ID_HEADER, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": f"Missing {USER_ID_HEADER}."},
        )
    return user_id


def require_admin(request: Request) -> str:
    """Require admin rights. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user_id = get_user_id(request)
    resolver: AdminResolver = request.app.state.admin_resolver
    if not resolver.is_admin(user_id):
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user_id


def get_orchestrator(request: Request) -> OwnershipOrchestrator:
    return request.app.state.orchestrator


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.users
