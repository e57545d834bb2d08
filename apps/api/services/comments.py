"""Comment threads on logs, gated by the visibility resolver."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.config import settings
from core.exceptions import ForbiddenError, ValidationError
from models import Comment, utcnow
from services.visibility import get_commentable_log

logger = logging.getLogger(__name__)


def list_comments(db: Session, actor: ActorContext, log_id: UUID) -> List[Comment]:
    """Oldest first. Reading the thread requires the same participation as posting."""
    log, participates = get_commentable_log(db, actor, log_id)
    if not participates:
        raise ForbiddenError("Not allowed to view comments on this log")
    comments = (
        db.query(Comment)
        .filter(Comment.log_id == log.id)
        .order_by(Comment.created_at.asc(), Comment.id)
        .all()
    )
    return comments


def post_comment(db: Session, actor: ActorContext, log_id: UUID, text) -> Comment:
    log, participates = get_commentable_log(db, actor, log_id)
    if not participates:
        raise ForbiddenError("Not allowed to comment on this log")

    body = text.strip() if isinstance(text, str) else ""
    if not body:
        raise ValidationError("Comment text is required", field="text")
    if len(body) > settings.COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment must be at most {settings.COMMENT_MAX_LENGTH} characters", field="text"
        )

    comment = Comment(
        log_id=log.id,
        author_id=actor.user_id,
        author_name=actor.display_name,
        author_role=actor.role,
        text=body,
        created_at=utcnow(),
    )
    db.add(comment)
    db.flush()

    logger.info(
        "Comment posted",
        extra={"extra_fields": {"log_id": str(log.id), "author_id": str(actor.user_id)}},
    )
    return comment
