"""
Visibility resolver.

The one place that decides what an actor may read or write:

- Logs: owned by the actor, UNION group-shared (is_group) logs whose owner
  shares a group with the actor. Filters (tags, time range, coach narrowing
  to one athlete) are ANDed on top of that union and never widen it.
- Comments: readable log AND (owner OR coach sharing a group with the owner).
- Attendance and announcements: coach AND member of the group.

List queries degrade to narrower results when the actor has no group;
single-record checks raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, false, or_
from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.exceptions import ForbiddenError, NotFoundError
from models import CheckIn, LogEntry, LogEntryTag, as_utc
from services.group_membership import is_member, member_ids_subquery
from services.log_entries import normalize_tags


@dataclass(frozen=True)
class LogFilters:
    tags: List[str] = field(default_factory=list)
    user_id: Optional[UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


def log_visibility_predicate(db: Session, actor: ActorContext, user_id: Optional[UUID] = None):
    """
    WHERE clause for the logs the actor may read.

    user_id narrows the result to one owner only when the actor is a coach
    and the target is a member of one of the coach's groups. Any other
    narrowing request is ignored and the full union is returned.
    """
    owned = LogEntry.user_id == actor.user_id
    if not actor.has_group:
        return owned

    shared = and_(
        LogEntry.is_group.is_(True),
        LogEntry.user_id.in_(member_ids_subquery(actor.group_ids)),
    )
    visible = or_(owned, shared)

    if user_id is not None and actor.is_coach and is_member(db, user_id, actor.group_ids):
        return and_(visible, LogEntry.user_id == user_id)
    return visible


def log_filter_predicate(db: Session, actor: ActorContext, filters: LogFilters):
    clauses = [log_visibility_predicate(db, actor, filters.user_id)]
    for name in normalize_tags(list(filters.tags or [])):
        clauses.append(LogEntry.tag_links.any(LogEntryTag.name == name))
    if filters.date_from is not None:
        clauses.append(LogEntry.timestamp >= as_utc(filters.date_from))
    if filters.date_to is not None:
        clauses.append(LogEntry.timestamp <= as_utc(filters.date_to))
    if filters.date_from is not None and filters.date_to is not None and as_utc(filters.date_from) > as_utc(filters.date_to):
        clauses.append(false())
    return and_(*clauses)


def list_visible_logs(db: Session, actor: ActorContext, filters: Optional[LogFilters] = None) -> List[LogEntry]:
    """Visible logs, newest first."""
    predicate = log_filter_predicate(db, actor, filters or LogFilters())
    return (
        db.query(LogEntry)
        .filter(predicate)
        .order_by(LogEntry.timestamp.desc(), LogEntry.created_at.desc())
        .all()
    )


def can_read_log(db: Session, actor: ActorContext, log: LogEntry) -> bool:
    if log.user_id == actor.user_id:
        return True
    return bool(log.is_group) and is_member(db, log.user_id, actor.group_ids)


def can_participate(db: Session, actor: ActorContext, log: LogEntry) -> bool:
    """May the actor read and post comments on this log."""
    if log.user_id == actor.user_id:
        return True
    return actor.is_coach and is_member(db, log.user_id, actor.group_ids)


def get_commentable_log(db: Session, actor: ActorContext, log_id: UUID) -> Tuple[LogEntry, bool]:
    """
    Load a log for the comment thread, with the actor's participation flag.

    A log the actor cannot read is reported as NotFound, whether it exists
    or not.
    """
    log = db.get(LogEntry, log_id)
    if log is None or not can_read_log(db, actor, log):
        raise NotFoundError("Log")
    return log, can_participate(db, actor, log)


def ensure_attendance_access(actor: ActorContext, checkin: CheckIn) -> None:
    ensure_group_coach(actor, checkin.group_id, "manage attendance")


def ensure_group_coach(actor: ActorContext, group_id: UUID, action: str = "manage this group") -> None:
    """Coach AND member of the group, else ForbiddenError."""
    if not actor.is_coach:
        raise ForbiddenError(f"Only coaches can {action}")
    if not actor.in_group(group_id):
        raise ForbiddenError("Not a coach of this group")
