from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from resumeai.core.config import settings


def owner_or_remote_address(request: Request) -> str:
    """Reasoner-backed routes are limited per caller identity, then per client address."""
    owner_id = (request.headers.get("X-User-Id") or "").strip()
    if owner_id:
        return f"owner:{owner_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=owner_or_remote_address, enabled=settings.rate_limit_enabled)


def rate_limit():
    if settings.rate_limit_enabled:
        return limiter.limit(settings.rate_limit)

    def decorator(func):
        return func

    return decorator
