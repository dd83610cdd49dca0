"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()). A single shared instance
keeps one in-memory counter store for every route.

Requests are keyed by the acting user (X-User-Id) when present, so users
behind one proxy address do not share a limit. Anonymous requests fall back
to the client address; they are rejected with 401 anyway.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address


def user_or_remote_address(request: Request) -> str:
    user_id = request.headers.get("X-User-Id", "").strip()
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_remote_address, storage_uri="memory://")
