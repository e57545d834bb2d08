"""
Log entry and tag mutations.

Tag registration is an explicit step: ensure_tags() upserts the per-user
registry, then the log's tag links are replaced. Neither step is hidden
inside the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.database import upsert_insert
from core.exceptions import NotFoundError, ValidationError
from models import LogEntry, LogEntryTag, Tag, as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagView:
    id: str
    name: str
    created_at: Optional[Any] = None


def normalize_tags(raw: Any) -> List[str]:
    """
    Coerce tag input to a de-duplicated list of lowercase names.

    Non-list input becomes []. Non-string and blank items are dropped
    individually; first occurrence wins the ordering.
    """
    if not isinstance(raw, (list, tuple)):
        return []
    seen = set()
    out: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        name = item.strip().lower()
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


def _clean_emoji(value: Any) -> str:
    emoji = value.strip() if isinstance(value, str) else ""
    if not emoji:
        raise ValidationError("Emoji is required", field="emoji")
    return emoji


def ensure_tags(db: Session, user_id: UUID, names: Iterable[str]) -> None:
    """
    Register tag names for a user.

    INSERT ... ON CONFLICT (user_id, name) DO NOTHING: existing rows keep
    their original created_at, concurrent registrations converge on one row.
    """
    now = utcnow()
    for name in names:
        stmt = (
            upsert_insert(db, Tag)
            .values(id=uuid4(), user_id=user_id, name=name, created_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "name"])
        )
        db.execute(stmt)


def _set_log_tags(log: LogEntry, names: List[str]) -> None:
    current = {link.name: link for link in log.tag_links}
    log.tag_links = [current.get(name) or LogEntryTag(name=name) for name in names]


def create_log(db: Session, actor: ActorContext, fields: dict) -> LogEntry:
    """Create a log owned by the actor."""
    emoji = _clean_emoji(fields.get("emoji"))
    tags = normalize_tags(fields.get("tags"))

    log = LogEntry(
        user_id=actor.user_id,
        emoji=emoji,
        timestamp=as_utc(fields.get("timestamp")) or utcnow(),
        is_group=bool(fields.get("is_group")),
        notes=fields.get("notes") or "",
        created_at=utcnow(),
    )
    ensure_tags(db, actor.user_id, tags)
    _set_log_tags(log, tags)
    db.add(log)
    db.flush()

    logger.info(
        "Log created",
        extra={"extra_fields": {"log_id": str(log.id), "user_id": str(actor.user_id), "is_group": log.is_group}},
    )
    return log


def get_owned_log(db: Session, actor: ActorContext, log_id: UUID) -> Optional[LogEntry]:
    return (
        db.query(LogEntry)
        .filter(LogEntry.id == log_id, LogEntry.user_id == actor.user_id)
        .first()
    )


def update_log(db: Session, actor: ActorContext, log_id: UUID, fields: dict) -> LogEntry:
    """
    Apply a partial update. Only keys present in `fields` change.

    A log that is missing or owned by someone else raises NotFoundError; the
    two cases are indistinguishable to the caller.
    """
    log = get_owned_log(db, actor, log_id)
    if log is None:
        raise NotFoundError("Log")

    if "emoji" in fields:
        log.emoji = _clean_emoji(fields["emoji"])
    if "timestamp" in fields and fields["timestamp"] is not None:
        log.timestamp = as_utc(fields["timestamp"])
    if "is_group" in fields:
        log.is_group = bool(fields["is_group"])
    if "notes" in fields:
        log.notes = fields["notes"] or ""
    if "tags" in fields:
        tags = normalize_tags(fields["tags"])
        ensure_tags(db, actor.user_id, tags)
        _set_log_tags(log, tags)

    log.updated_at = utcnow()
    db.flush()

    logger.info(
        "Log updated",
        extra={"extra_fields": {"log_id": str(log.id), "fields": sorted(fields)}},
    )
    return log


def delete_log(db: Session, actor: ActorContext, log_id: UUID) -> bool:
    """
    Delete the actor's log. Absent or foreign ids are a silent no-op.

    Returns whether a row was deleted, for logging only; callers must not
    expose it.
    """
    log = get_owned_log(db, actor, log_id)
    if log is None:
        return False
    db.delete(log)
    db.flush()
    logger.info("Log deleted", extra={"extra_fields": {"log_id": str(log_id)}})
    return True


def list_used_tags(db: Session, actor: ActorContext) -> List[TagView]:
    """Distinct tag names across the actor's own logs, sorted."""
    rows = (
        db.query(LogEntryTag.name)
        .join(LogEntry, LogEntry.id == LogEntryTag.log_id)
        .filter(LogEntry.user_id == actor.user_id)
        .distinct()
        .order_by(LogEntryTag.name)
        .all()
    )
    return [TagView(id=f"tag-{i}", name=r[0]) for i, r in enumerate(rows)]


def list_registry_tags(db: Session, actor: ActorContext) -> List[TagView]:
    """The actor's persisted tag registry, sorted by name."""
    tags = db.query(Tag).filter(Tag.user_id == actor.user_id).order_by(Tag.name).all()
    return [TagView(id=str(t.id), name=t.name, created_at=t.created_at) for t in tags]
