from fastapi import APIRouter

from ...routers import auth as auth_router
from ...routers import backups as backups_router
from ...routers import calendar as calendar_router
from ...routers import notifications as notifications_router
from ...routers import todos as todos_router


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth_router.router)
api_router.include_router(todos_router.router)
api_router.include_router(calendar_router.router)
api_router.include_router(notifications_router.router)
api_router.include_router(backups_router.router)


@api_router.get("/", tags=["meta"])  # lightweight meta endpoint
def api_info():
    return {
        "name": "Todo Calendar API",
        "version": "v1",
        "docs": "/docs",
        "auth": {
            "login": "/api/v1/auth/google/login",
            "callback": "/api/v1/auth/google/callback",
            "me": "/api/v1/auth/me",
            "state": "/api/v1/auth/state",
        },
        "todos": "/api/v1/todos",
        "calendar": "/api/v1/calendar",
        "notifications": "/api/v1/notifications",
        "backups": "/api/v1/backups",
    }
