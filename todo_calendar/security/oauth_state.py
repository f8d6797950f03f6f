# Signed `state` for the OAuth round trip.
# The same value goes to the provider and into a short-lived cookie; the
# callback accepts it only when both match and the signature is fresh.

from __future__ import annotations

import os
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..config import settings


def _get_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.CSRF_SECRET, salt="todo_calendar.oauth-state.v1")


def generate_state() -> str:
    return _get_serializer().dumps(os.urandom(16).hex())


def validate_state(returned: Optional[str], stored: Optional[str], max_age: Optional[int] = None) -> bool:
    if not returned or not stored or returned != stored:
        return False
    try:
        _get_serializer().loads(returned, max_age=max_age or settings.OAUTH_STATE_TTL_SECONDS)
        return True
    except (BadSignature, SignatureExpired):
        return False


def set_state_cookie(response, state: str) -> None:
    response.set_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        value=state,
        httponly=True,
        secure=settings.CSRF_COOKIE_SECURE,
        samesite="lax",  # must survive the top-level redirect back from the provider
        max_age=settings.OAUTH_STATE_TTL_SECONDS,
    )


def clear_state_cookie(response) -> None:
    response.delete_cookie(settings.OAUTH_STATE_COOKIE_NAME)
