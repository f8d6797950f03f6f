# Session tokens for signed-in users.
# - The identity provider proves who the user is; we then issue our own JWT.
# - Token travels as a Bearer header (API clients) or an HttpOnly cookie (browser).

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .db_models import UserDB
from .models import UserPublic

bearer_scheme = HTTPBearer(auto_error=False)


# --- JWT helpers ---

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def get_access_token_ttl_minutes() -> int:
    """
    Return session token TTL in minutes, parsed safely from settings.
    Falls back to 60 if env contains invalid value (e.g., '60m').
    """
    try:
        return int(settings.JWT_EXPIRE_MIN)
    except Exception:
        return 60


def create_access_token(subject: str | Dict[str, Any]) -> str:
    """
    Create a signed JWT for a user.
    - `subject` is the identity-provider subject (str) or a payload dict with `sub`.
    - Expiration controlled by settings.JWT_EXPIRE_MIN (safely parsed).
    """
    if isinstance(subject, str):
        payload: Dict[str, Any] = {"sub": subject}
    else:
        payload = {**subject}
        payload.setdefault("sub", subject.get("sub") or subject.get("id"))

    minutes = get_access_token_ttl_minutes()
    expire = _now_utc() + timedelta(minutes=minutes)
    payload.update({"exp": expire})
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_subject(token: str) -> str | None:
    """Return the `sub` claim of a valid token, None otherwise."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def _token_from_request(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds is not None and creds.credentials:
        return creds.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_optional_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserPublic | None:
    """Current user if a valid session token is present, None otherwise."""
    token = _token_from_request(request, creds)
    if not token:
        return None
    subject = decode_subject(token)
    if subject is None:
        return None
    row = db.get(UserDB, subject)
    if row is None:
        return None
    return UserPublic.model_validate(row)


def get_current_user(user: UserPublic | None = Depends(get_optional_user)) -> UserPublic:
    """Like get_optional_user, but a missing/invalid session is a 401."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
