from __future__ import annotations

import os
from typing import Optional

from fastapi import HTTPException, Request, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..config import settings


def _get_serializer() -> URLSafeTimedSerializer:
    # Stable salt binds the purpose; change to rotate
    return URLSafeTimedSerializer(secret_key=settings.CSRF_SECRET, salt="todo_calendar.csrf.v1")


def generate_csrf_token() -> str:
    """Create a signed CSRF token string."""
    return _get_serializer().dumps(os.urandom(16).hex())


def validate_csrf_token(token: str, max_age: Optional[int] = None) -> bool:
    """Validate CSRF token signature and TTL."""
    if not token:
        return False
    try:
        _get_serializer().loads(token, max_age=max_age or settings.CSRF_TOKEN_TTL_SECONDS)
        return True
    except (BadSignature, SignatureExpired):
        return False


def extract_csrf_from_request(request: Request) -> Optional[str]:
    """The client echoes the cookie value in a header (double submit)."""
    return request.headers.get(settings.CSRF_HEADER_NAME)


def set_csrf_cookie(response, token: Optional[str] = None) -> str:
    """Set the CSRF cookie; returns the token used."""
    t = token or generate_csrf_token()
    response.set_cookie(
        key=settings.CSRF_COOKIE_NAME,
        value=t,
        httponly=False,  # the SPA reads it to fill the header
        secure=settings.CSRF_COOKIE_SECURE,
        samesite=settings.CSRF_COOKIE_SAMESITE,
        max_age=settings.CSRF_TOKEN_TTL_SECONDS,
    )
    return t


def _uses_session_cookie(request: Request) -> bool:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return False
    return settings.SESSION_COOKIE_NAME in request.cookies


def ensure_csrf(request: Request) -> None:
    """FastAPI dependency enforcing CSRF on cookie-authenticated mutations.

    Bearer-authenticated calls are not exposed to CSRF and pass through.
    Otherwise both the cookie token and the header token must be valid
    signed tokens and equal.
    """
    if not settings.CSRF_ENFORCE:
        return None
    if not _uses_session_cookie(request):
        return None

    cookie_token = request.cookies.get(settings.CSRF_COOKIE_NAME, "")
    provided = extract_csrf_from_request(request) or ""

    if not (cookie_token and provided):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF token missing")

    if not (validate_csrf_token(cookie_token) and validate_csrf_token(provided)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF token invalid")

    if cookie_token != provided:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="CSRF token mismatch")

    return None
