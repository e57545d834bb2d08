"""
Logs API Router

List visible logs (owned + group-shared), create, partially update and
delete the caller's own logs.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from core.auth import ActorContext, get_current_actor
from core.database import get_db
from models import LogEntry
from schemas import LogCreate, LogResponse, LogUpdate
from services.log_entries import create_log, delete_log, update_log
from services.visibility import LogFilters, list_visible_logs

router = APIRouter(prefix="/v1/logs", tags=["logs"])


def to_log_response(log: LogEntry, actor: ActorContext) -> LogResponse:
    return LogResponse(
        id=log.id,
        user_id=log.user_id,
        user_name=log.owner.display_name if log.owner else None,
        emoji=log.emoji,
        timestamp=log.timestamp,
        is_group=log.is_group,
        notes=log.notes or "",
        tags=log.tags,
        is_own=log.user_id == actor.user_id,
        created_at=log.created_at,
        updated_at=log.updated_at,
    )


@router.get("", response_model=List[LogResponse])
def get_logs(
    tag: List[str] = Query(default=[]),
    user_id: Optional[UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Logs visible to the caller, newest first.

    - tag (repeatable): every tag must be present on the log
    - user_id: coaches may narrow to one athlete of their group; ignored otherwise
    - date_from / date_to: inclusive bounds on the log timestamp
    """
    filters = LogFilters(tags=tag, user_id=user_id, date_from=date_from, date_to=date_to)
    return [to_log_response(log, actor) for log in list_visible_logs(db, actor, filters)]


@router.post("", response_model=LogResponse, status_code=status.HTTP_201_CREATED)
def post_log(
    payload: LogCreate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    log = create_log(db, actor, payload.model_dump())
    db.commit()
    return to_log_response(log, actor)


@router.put("/{log_id}", response_model=LogResponse)
def put_log(
    log_id: UUID,
    payload: LogUpdate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Partial update: only fields sent in the body change."""
    log = update_log(db, actor, log_id, payload.model_dump(exclude_unset=True))
    db.commit()
    return to_log_response(log, actor)


@router.delete("/{log_id}")
def remove_log(
    log_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    # Same response whether or not anything was deleted
    delete_log(db, actor, log_id)
    db.commit()
    return {"success": True}
