# >>> Composition root
# - Services (identity provider, auth event stream, calendar mirror, notifications,
#   backups) are built once in the lifespan and parked on app.state.
# - The sign-in handler is subscribed at startup and removed at shutdown.
# - Schema is managed by Alembic (alembic upgrade head).

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from . import store_db
from .api.errors import register_exception_handlers
from .api.v1.router import api_router
from .backup import BackupService
from .calendar_sync import CalendarMirror, CalendarSyncJob, CalendarTokenStore
from .config import settings
from .db import engine, get_session_factory
from .identity import AuthEvent, AuthEventStream, GoogleIdentityProvider
from .logging_utils import setup_logging
from .notifications import NotificationService
from .rate_limit import _rate_limit_exceeded_handler, limiter

logger = logging.getLogger(__name__)


def make_auth_handler(session_factory, tokens: CalendarTokenStore):
    """Persist the profile and calendar credentials of whoever signs in."""

    def handle(event: AuthEvent) -> None:
        if event.kind != "signed_in":
            logger.info("user %s signed out", event.identity.subject)
            return
        identity = event.identity
        db = session_factory()
        try:
            store_db.create_or_update_user(
                db,
                user_id=identity.subject,
                email=identity.email,
                display_name=identity.display_name,
                photo_url=identity.photo_url,
            )
            if event.credentials is not None and getattr(event.credentials, "token", None):
                tokens.save_credentials(db, identity.subject, event.credentials)
        finally:
            db.close()

    return handle


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL)

    # honour a test override of the session factory
    session_factory = app.dependency_overrides.get(get_session_factory, get_session_factory)()

    tokens = CalendarTokenStore()
    mirror = CalendarMirror(tokens=tokens)
    auth_events = AuthEventStream()

    app.state.identity_provider = GoogleIdentityProvider()
    app.state.auth_events = auth_events
    app.state.calendar_mirror = mirror
    app.state.notification_service = NotificationService()
    app.state.backup_service = BackupService()

    unsubscribe = auth_events.subscribe(make_auth_handler(session_factory, tokens))

    job = None
    if settings.CALENDAR_AUTO_SYNC and mirror.enabled:
        job = CalendarSyncJob(mirror, session_factory)
        job.start()
    app.state.calendar_sync_job = job

    if not app.state.identity_provider.initialized:
        logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; sign-in is disabled")

    try:
        yield
    finally:
        # --- Shutdown ---
        if job is not None:
            await job.stop()
        unsubscribe()
        auth_events.close()
        app.state.calendar_sync_job = None


tags_metadata = [
    {"name": "auth", "description": "Google sign-in, session, CSRF token."},
    {"name": "todos", "description": "Todos: CRUD, filtered list, stats, urgent list."},
    {"name": "calendar", "description": "Mirroring todos to Google Calendar."},
    {"name": "notifications", "description": "Notification outbox and preferences."},
    {"name": "backups", "description": "Per-user backup and restore."},
]

app = FastAPI(
    title="Todo Calendar API",
    version="1.0.0",
    description=(
        "Versioned JSON API exposed under /api/v1. "
        "Sign in with Google to obtain a session cookie / Bearer token."
    ),
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)


@app.get("/health")
def health():
    """Simple healthcheck endpoint."""
    return {"status": "ok"}


app.include_router(api_router)

# Unified error handlers
register_exception_handlers(app)

# Rate limiting (global middleware + handler)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# Request ID + access log middleware
@app.middleware("http")
async def request_id_and_logging(request: Request, call_next):
    start = time.perf_counter()
    incoming = request.headers.get(settings.REQUEST_ID_HEADER)
    req_id = incoming or uuid.uuid4().hex
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers.setdefault(settings.REQUEST_ID_HEADER, req_id)
    duration_ms = int((time.perf_counter() - start) * 1000)
    logging.getLogger("todo_calendar.request").info(
        "method=%s path=%s status=%s duration_ms=%s request_id=%s",
        request.method,
        request.url.path,
        getattr(response, "status_code", "-"),
        duration_ms,
        req_id,
    )
    return response


# --- Security: CORS and security headers ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count", settings.REQUEST_ID_HEADER],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault(
        "Permissions-Policy",
        "camera=(), microphone=(), geolocation=()",
    )
    if settings.SECURITY_CSP:
        csp = settings.SECURITY_CSP
        path = request.url.path
        if path.startswith("/docs") or path.startswith("/redoc"):
            # Swagger/ReDoc need inline scripts and styles + CDN assets
            csp = (
                "default-src 'self'; "
                "script-src 'self' https://cdn.jsdelivr.net https://unpkg.com 'unsafe-inline'; "
                "style-src 'self' https://cdn.jsdelivr.net 'unsafe-inline'; "
                "img-src 'self' https: data:; "
                "font-src 'self' https://cdn.jsdelivr.net data:; "
                "connect-src 'self'; "
                "frame-ancestors 'none'"
            )
        response.headers["Content-Security-Policy"] = csp
    if settings.SECURITY_ENABLE_HSTS:
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains; preload")
    return response


# --- Observability: liveness, readiness, metrics ---

@app.get("/live")
def live():
    return {"status": "live"}


@app.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready") from exc


# Expose Prometheus metrics at /metrics
Instrumentator().instrument(app).expose(app, include_in_schema=False)
