# PURPOSE: federated sign-in with Google, session cookie, /me, /state, /csrf, /logout

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from ..api.deps import get_auth_events, get_identity_provider
from ..auth import create_access_token, get_access_token_ttl_minutes, get_current_user, get_optional_user
from ..config import settings
from ..identity import AuthEvent, AuthEventStream, GoogleIdentityProvider, Identity, IdentityError, IdentityNotConfigured
from ..models import AuthState, TokenResponse, UserPublic
from ..rate_limit import limiter
from ..security import (
    clear_state_cookie,
    ensure_csrf,
    generate_state,
    set_csrf_cookie,
    set_state_cookie,
    validate_state,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _not_configured() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Sign-in is not configured",
    )


@router.get("/google/login")
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def google_login(
    request: Request,
    response: Response,
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
):
    """Redirect the browser to the Google consent screen."""
    if not provider.initialized:
        raise _not_configured()
    state = generate_state()
    try:
        url = provider.authorization_url(state)
    except IdentityNotConfigured as exc:
        raise _not_configured() from exc
    redirect = RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
    set_state_cookie(redirect, state)
    return redirect


@router.get("/google/callback", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def google_callback(
    request: Request,
    response: Response,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
    events: AuthEventStream = Depends(get_auth_events),
):
    if error:
        logger.info("sign-in rejected by provider: %s", error)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in was denied")

    if not validate_state(state, request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing authorization code")

    try:
        sign_in = provider.exchange_code(code)
    except IdentityNotConfigured as exc:
        raise _not_configured() from exc
    except IdentityError as exc:
        logger.warning("sign-in failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign-in failed") from exc

    # subscribers store the profile and the calendar credentials
    events.publish(AuthEvent(kind="signed_in", identity=sign_in.identity, credentials=sign_in.credentials))
    logger.info("user %s signed in", sign_in.identity.subject)

    token = create_access_token(sign_in.identity.subject)
    out = JSONResponse(content=TokenResponse(access_token=token).model_dump())
    out.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.CSRF_COOKIE_SECURE,
        samesite=settings.CSRF_COOKIE_SAMESITE,
        max_age=get_access_token_ttl_minutes() * 60,
    )
    set_csrf_cookie(out)
    clear_state_cookie(out)
    return out


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(ensure_csrf)])
def logout(
    user: UserPublic | None = Depends(get_optional_user),
    events: AuthEventStream = Depends(get_auth_events),
):
    if user is not None:
        identity = Identity(
            subject=user.id,
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
        )
        events.publish(AuthEvent(kind="signed_out", identity=identity))
    out = Response(status_code=status.HTTP_204_NO_CONTENT)
    out.delete_cookie(settings.SESSION_COOKIE_NAME)
    out.delete_cookie(settings.CSRF_COOKIE_NAME)
    return out


@router.get("/me", response_model=UserPublic)
def me(user: UserPublic = Depends(get_current_user)):
    return user


@router.get("/state", response_model=AuthState)
def auth_state(
    user: UserPublic | None = Depends(get_optional_user),
    provider: GoogleIdentityProvider = Depends(get_identity_provider),
):
    """Whether sign-in is available and who is signed in (if anyone)."""
    return AuthState(initialized=provider.initialized, user=user)


@router.get("/csrf")
def csrf_token(response: Response):
    token = set_csrf_cookie(response)
    return {"csrf_token": token}
