import logging
from datetime import timezone
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from sqlalchemy.orm import Session

from ..config import settings
from ..db_models import CalendarCredentialsDB, now_utc
from ..identity import CALENDAR_SCOPES, TOKEN_URI, has_calendar_scope

logger = logging.getLogger(__name__)


class CalendarTokenStore:
    """Per-user OAuth credentials for the calendar API, encrypted at rest."""

    def __init__(
        self,
        encryption_key: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        # In production the key MUST come from the environment, otherwise
        # stored tokens become unreadable after a restart.
        key = encryption_key or settings.GOOGLE_TOKEN_ENCRYPTION_KEY
        if not key:
            logger.warning("GOOGLE_TOKEN_ENCRYPTION_KEY not set. Generating a temporary key.")
            key = Fernet.generate_key().decode()
        self.fernet = Fernet(key.encode() if isinstance(key, str) else key)
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GOOGLE_CLIENT_SECRET

    def _encrypt(self, data: Optional[str]) -> Optional[str]:
        if not data:
            return None
        return self.fernet.encrypt(data.encode()).decode()

    def _decrypt(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except InvalidToken:
            logger.error("Failed to decrypt stored calendar token")
            return None

    def save_credentials(self, db: Session, user_id: str, credentials: Credentials) -> bool:
        """Store credentials that carry a calendar scope; returns False for the rest."""
        if not has_calendar_scope(credentials.scopes):
            logger.info("No calendar scope granted for user %s; credentials not stored", user_id)
            return False
        row = db.get(CalendarCredentialsDB, user_id)
        if row is None:
            row = CalendarCredentialsDB(user_id=user_id)
        row.access_token = self._encrypt(credentials.token)
        # Google omits the refresh token on re-consent; keep the one we have
        if credentials.refresh_token:
            row.refresh_token = self._encrypt(credentials.refresh_token)
        expiry = credentials.expiry
        if expiry is not None and expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        row.token_expiry = expiry
        row.scopes = list(credentials.scopes)
        row.updated_at = now_utc()
        db.add(row)
        db.commit()
        logger.info("Saved calendar credentials for user %s", user_id)
        return True

    def load_credentials(self, db: Session, user_id: str) -> Optional[Credentials]:
        row = db.get(CalendarCredentialsDB, user_id)
        if row is None:
            return None
        access_token = self._decrypt(row.access_token)
        if not access_token:
            return None

        # google-auth compares expiry as naive UTC
        expiry = row.token_expiry
        if expiry is not None and expiry.tzinfo is not None:
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=access_token,
            refresh_token=self._decrypt(row.refresh_token),
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=row.scopes or CALENDAR_SCOPES,
            expiry=expiry,
        )

    def get_access_token(self, db: Session, user_id: str) -> Optional[str]:
        """A usable calendar access token, refreshed if expired; None when unavailable."""
        creds = self.load_credentials(db, user_id)
        if creds is None:
            logger.info("No calendar credentials for user %s; consent required", user_id)
            return None
        if creds.valid:
            return creds.token
        if not creds.refresh_token:
            logger.info("Calendar token for user %s expired and cannot be refreshed", user_id)
            return None
        try:
            creds.refresh(Request())
        except GoogleAuthError:
            logger.warning("Refreshing calendar token failed for user %s", user_id, exc_info=True)
            return None
        self.save_credentials(db, user_id, creds)
        return creds.token

    def delete_credentials(self, db: Session, user_id: str) -> None:
        row = db.get(CalendarCredentialsDB, user_id)
        if row is None:
            return
        db.delete(row)
        db.commit()
        logger.info("Deleted calendar credentials for user %s", user_id)
