# Security utilities package

from .csrf import (
    generate_csrf_token,
    validate_csrf_token,
    extract_csrf_from_request,
    ensure_csrf,
    set_csrf_cookie,
)
from .oauth_state import (
    generate_state,
    validate_state,
    set_state_cookie,
    clear_state_cookie,
)

__all__ = [
    "generate_csrf_token",
    "validate_csrf_token",
    "extract_csrf_from_request",
    "ensure_csrf",
    "set_csrf_cookie",
    "generate_state",
    "validate_state",
    "set_state_cookie",
    "clear_state_cookie",
]
