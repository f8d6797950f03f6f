# Calendar mirroring: REST client, stored OAuth tokens, mirror service, periodic sync

from .client import CalendarClient, build_event
from .job import CalendarSyncJob
from .mirror import (
    CalendarMirror,
    Mapped,
    MappingState,
    Unmapped,
    mirror_todo,
    unmirror_todo,
)
from .tokens import CalendarTokenStore

__all__ = [
    "CalendarClient",
    "build_event",
    "CalendarSyncJob",
    "CalendarMirror",
    "Mapped",
    "MappingState",
    "Unmapped",
    "mirror_todo",
    "unmirror_todo",
    "CalendarTokenStore",
]
