"""
Coach announcements.

Each group has at most one current announcement. Members read it; coaches of
the group post (insert or replace) and remove it. Posting is one upsert keyed
by group_id, so two coaches posting at once converge on a single row.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.config import settings
from core.database import upsert_insert
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from models import Announcement, TrainingGroup, utcnow
from services.group_membership import get_group
from services.visibility import ensure_group_coach

logger = logging.getLogger(__name__)


def _require_group(db: Session, group_id: UUID) -> TrainingGroup:
    group = get_group(db, group_id)
    if group is None:
        raise NotFoundError("Group")
    return group


def _clean_text(text: Any) -> str:
    body = text.strip() if isinstance(text, str) else ""
    if not body:
        raise ValidationError("Announcement text is required", field="text")
    if len(body) > settings.ANNOUNCEMENT_MAX_LENGTH:
        raise ValidationError(
            f"Announcement must be at most {settings.ANNOUNCEMENT_MAX_LENGTH} characters", field="text"
        )
    return body


def _current(db: Session, group_id: UUID) -> Optional[Announcement]:
    return db.query(Announcement).filter(Announcement.group_id == group_id).first()


def get_announcement(db: Session, actor: ActorContext, group_id: UUID) -> Optional[Announcement]:
    """The group's announcement, or None when nothing is posted. Members only."""
    group = _require_group(db, group_id)
    if not actor.in_group(group.id):
        raise ForbiddenError("Not a member of this group")
    return _current(db, group.id)


def post_announcement(db: Session, actor: ActorContext, group_id: UUID, text: Any) -> Announcement:
    """Create or replace the group's announcement."""
    if not actor.is_coach:
        raise ForbiddenError("Only coaches can post announcements")
    group = _require_group(db, group_id)
    ensure_group_coach(actor, group.id, "post announcements")
    body = _clean_text(text)
    now = utcnow()

    stmt = upsert_insert(db, Announcement).values(
        id=uuid4(),
        group_id=group.id,
        coach_id=actor.user_id,
        author_name=actor.display_name,
        text=body,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["group_id"],
        set_={
            "text": stmt.excluded.text,
            "coach_id": stmt.excluded.coach_id,
            "author_name": stmt.excluded.author_name,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)

    announcement = _current(db, group.id)
    db.refresh(announcement)

    logger.info(
        "Announcement posted",
        extra={"extra_fields": {"group_id": str(group.id), "coach_id": str(actor.user_id)}},
    )
    return announcement


def delete_announcement(db: Session, actor: ActorContext, group_id: UUID) -> bool:
    """Remove the group's announcement. Removing when nothing is posted is a no-op."""
    if not actor.is_coach:
        raise ForbiddenError("Only coaches can remove announcements")
    group = _require_group(db, group_id)
    ensure_group_coach(actor, group.id, "remove announcements")

    deleted = (
        db.query(Announcement)
        .filter(Announcement.group_id == group.id)
        .delete(synchronize_session=False)
    )
    if deleted:
        logger.info(
            "Announcement removed",
            extra={"extra_fields": {"group_id": str(group.id), "coach_id": str(actor.user_id)}},
        )
    return bool(deleted)
