# PURPOSE: /todos CRUD, filtered list, stats and urgent list.
# - Categories in responses are always computed for "now".
# - Calendar mirroring runs after the response as a background task.

from typing import Annotated, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.deps import get_calendar_mirror, get_notification_service, load_notification_settings
from ..api.errors import load_failed
from ..auth import get_current_user
from ..calendar_sync import CalendarMirror, mirror_todo, unmirror_todo
from ..config import settings
from ..db import get_db, get_session_factory
from ..models import Todo, TodoCreate, TodoFilter, TodoStats, TodoUpdate, UserPublic
from ..notifications import NotificationService
from ..queries import compute_stats, query_todos, sort_todos, with_live_category
from ..rate_limit import limiter
from ..security import ensure_csrf
from ..store_db import (
    TodoLimitExceeded,
    create_todo as db_create_todo,
    delete_todo as db_delete_todo,
    get_todo as db_get_todo,
    get_urgent_todos as db_get_urgent_todos,
    list_todos_by_user as db_list_todos,
    update_todo as db_update_todo,
)

router = APIRouter(prefix="/todos", tags=["todos"])


def _live(row) -> Todo:
    return with_live_category([row])[0]


@router.get("/", response_model=List[Todo])
async def list_todos(
    response: Response,
    flt: Annotated[TodoFilter, Query()],
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    try:
        rows = db_list_todos(db, user.id)
    except SQLAlchemyError as exc:
        raise load_failed(exc) from exc
    items = query_todos(rows, flt)
    response.headers["X-Total-Count"] = str(len(items))
    return items


@router.get("/stats", response_model=TodoStats)
async def todo_stats(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    try:
        rows = db_list_todos(db, user.id)
    except SQLAlchemyError as exc:
        raise load_failed(exc) from exc
    return compute_stats(rows)


@router.get("/urgent", response_model=List[Todo])
async def urgent_todos(
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    """Incomplete todos due within two hours, overdue ones included."""
    try:
        rows = db_get_urgent_todos(db, user.id)
    except SQLAlchemyError as exc:
        raise load_failed(exc) from exc
    return sort_todos(with_live_category(rows))


@router.post("/", response_model=Todo, status_code=status.HTTP_201_CREATED, dependencies=[Depends(ensure_csrf)])
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def create_todo(
    request: Request,
    response: Response,
    item: TodoCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
    session_factory=Depends(get_session_factory),
):
    try:
        row = db_create_todo(db, item, owner_id=user.id, max_per_user=settings.MAX_TODOS_PER_USER)
    except TodoLimitExceeded as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    response.headers["Location"] = f"/api/v1/todos/{row.id}"
    if mirror.enabled:
        background_tasks.add_task(mirror_todo, mirror, session_factory, row.id)
    return _live(row)


@router.get("/{todo_id}", response_model=Todo)
async def get_todo(
    todo_id: str,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
):
    row = db_get_todo(db, todo_id, owner_id=user.id)
    if not row:
        raise HTTPException(status_code=404, detail="Todo not found")
    return _live(row)


@router.patch("/{todo_id}", response_model=Todo, dependencies=[Depends(ensure_csrf)])
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def update_todo(
    request: Request,
    response: Response,
    todo_id: str,
    item: TodoUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
    notifier: NotificationService = Depends(get_notification_service),
    session_factory=Depends(get_session_factory),
):
    before = db_get_todo(db, todo_id, owner_id=user.id)
    if not before:
        raise HTTPException(status_code=404, detail="Todo not found")
    was_completed = before.completed

    row = db_update_todo(db, todo_id, item, owner_id=user.id)
    if not row:
        raise HTTPException(status_code=404, detail="Todo not found")

    prefs = load_notification_settings(db, user.id)
    if row.completed and not was_completed:
        notifier.notify_complete(user.id, row, prefs)
    else:
        notifier.notify_update(user.id, row, prefs)

    if mirror.enabled:
        background_tasks.add_task(mirror_todo, mirror, session_factory, row.id)
    return _live(row)


@router.delete("/{todo_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(ensure_csrf)])
@limiter.limit(settings.RATE_LIMIT_WRITES)
async def delete_todo(
    request: Request,
    response: Response,
    todo_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: UserPublic = Depends(get_current_user),
    mirror: CalendarMirror = Depends(get_calendar_mirror),
    session_factory=Depends(get_session_factory),
):
    ok = db_delete_todo(db, todo_id, owner_id=user.id)
    if not ok:
        raise HTTPException(status_code=404, detail="Todo not found")
    if mirror.enabled:
        background_tasks.add_task(unmirror_todo, mirror, session_factory, todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
