"""
Comments API Router

Comment threads on a log. A log the caller cannot see is a 404; a visible
log the caller may not discuss is a 403.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import ActorContext, get_current_actor
from core.database import get_db
from schemas import CommentCreate, CommentListResponse, CommentResponse
from services.comments import list_comments, post_comment

router = APIRouter(prefix="/v1/logs", tags=["comments"])


@router.get("/{log_id}/comments", response_model=CommentListResponse)
def get_comments(
    log_id: UUID,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return {"comments": list_comments(db, actor, log_id)}


@router.post("/{log_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def post_log_comment(
    log_id: UUID,
    payload: CommentCreate,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    comment = post_comment(db, actor, log_id, payload.text)
    db.commit()
    return comment
