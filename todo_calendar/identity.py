# PURPOSE: Google sign-in (OpenID Connect) and the auth event stream.
# - The provider starts the consent flow and turns a callback code into an Identity plus credentials.
# - What follows a sign-in (profile upsert, calendar credentials) is subscribed on AuthEventStream at startup.

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Literal, Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from .config import settings

logger = logging.getLogger(__name__)

# Google may grant fewer scopes than requested (granular consent)
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_URI = "https://openidconnect.googleapis.com/v1/userinfo"

CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]
SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    *CALENDAR_SCOPES,
]


def has_calendar_scope(scopes: Optional[Iterable[str]]) -> bool:
    return bool(set(scopes or ()) & set(CALENDAR_SCOPES))


def _granted_scopes(token: dict) -> List[str]:
    # Google echoes the granted scopes; without them the request stands
    scope = token.get("scope")
    if isinstance(scope, str):
        scope = scope.split()
    return list(scope) if scope else list(SCOPES)


class IdentityError(Exception):
    """Consent denied, code exchange failed or the profile was unusable."""


class IdentityNotConfigured(IdentityError):
    pass


@dataclass(frozen=True)
class Identity:
    subject: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class SignIn:
    identity: Identity
    credentials: Any  # google.oauth2.credentials.Credentials


@dataclass(frozen=True)
class AuthEvent:
    kind: Literal["signed_in", "signed_out"]
    identity: Identity
    credentials: Any = None


AuthHandler = Callable[[AuthEvent], None]


class AuthEventStream:
    """Synchronous publish/subscribe channel for auth-state changes."""

    def __init__(self) -> None:
        self._handlers: List[AuthHandler] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, handler: AuthHandler) -> Callable[[], None]:
        """Register a handler; returns a callable that unsubscribes it."""
        if self._closed:
            raise RuntimeError("auth event stream is closed")
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: AuthEvent) -> None:
        if self._closed:
            logger.warning("dropping %s event for %s: stream closed", event.kind, event.identity.subject)
            return
        for handler in list(self._handlers):
            handler(event)

    def close(self) -> None:
        self._handlers.clear()
        self._closed = True


class GoogleIdentityProvider:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI

    @property
    def initialized(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _flow(self) -> Flow:
        if not self.initialized:
            raise IdentityNotConfigured("Google client credentials are not configured")
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                }
            },
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
            # the callback builds a fresh Flow, so there is no verifier to carry over
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        url, _ = self._flow().authorization_url(
            state=state,
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
        )
        return url

    def exchange_code(self, code: str) -> SignIn:
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise IdentityError(f"token exchange failed: {exc}") from exc

        try:
            info = flow.authorized_session().get(USERINFO_URI).json()
        except Exception as exc:
            raise IdentityError(f"failed to fetch user profile: {exc}") from exc

        subject = info.get("sub")
        email = info.get("email")
        if not subject or not email:
            raise IdentityError("profile is missing subject or email")

        identity = Identity(
            subject=str(subject),
            email=str(email),
            display_name=info.get("name"),
            photo_url=info.get("picture"),
        )
        granted = flow.credentials
        credentials = Credentials(
            token=granted.token,
            refresh_token=granted.refresh_token,
            id_token=getattr(granted, "id_token", None),
            token_uri=granted.token_uri,
            client_id=granted.client_id,
            client_secret=granted.client_secret,
            scopes=_granted_scopes(flow.oauth2session.token),
            expiry=granted.expiry,
        )
        if not has_calendar_scope(credentials.scopes):
            logger.info("user %s signed in without calendar access", identity.subject)
        return SignIn(identity=identity, credentials=credentials)
