from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from starlette.requests import Request

from .auth import decode_subject
from .config import settings


def get_storage_uri() -> str:
    return settings.REDIS_URL or settings.RATE_LIMIT_STORAGE_URI


def rate_limit_key(request: Request) -> str:
    """Signed-in callers are limited per user, everyone else per client address."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        token = auth[7:].strip()
    subject = decode_subject(token) if token else None
    if subject:
        return f"user:{subject}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=get_storage_uri(),
    headers_enabled=True,
)

__all__ = ["limiter", "rate_limit_key", "_rate_limit_exceeded_handler"]
