"""
Check-ins and attendance.

An AttendanceRecord holds sparse entries for one (check-in, group). The view
merges it with the group's live roster: members who joined after the
check-in was created appear as unrecorded (status None), never as absent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.database import upsert_insert
from core.exceptions import ForbiddenError, NotFoundError, ValidationError
from models import AttendanceRecord, CheckIn, User, utcnow
from services.group_membership import list_members
from services.visibility import ensure_attendance_access

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ("present", "absent", "excused")


@dataclass
class RosterStatus:
    user: User
    status: Optional[str]


@dataclass
class AttendanceView:
    checkin: CheckIn
    record: Optional[AttendanceRecord]
    athletes: List[RosterStatus]


def _canonical_user_id(raw: Any) -> str:
    """Hyphenated lowercase UUID when raw parses as one, else the stripped string."""
    text = str(raw).strip()
    try:
        return str(UUID(text))
    except ValueError:
        return text


def normalize_entries(entries: Any) -> List[Dict[str, str]]:
    """
    Keep only well-formed {user_id, status} entries.

    Bad items are dropped one by one; the submission as a whole never fails.
    A later entry for the same user replaces the earlier one. Users that are
    not on the roster are kept (the roster is evaluated at view time).
    """
    if not isinstance(entries, (list, tuple)):
        return []
    by_user: Dict[str, str] = {}
    for item in entries:
        if not isinstance(item, dict):
            continue
        raw_user = item.get("user_id")
        if raw_user is None:
            continue
        user_id = _canonical_user_id(raw_user)
        status = item.get("status")
        if not user_id or status not in ATTENDANCE_STATUSES:
            continue
        by_user.pop(user_id, None)
        by_user[user_id] = status
    return [{"user_id": u, "status": s} for u, s in by_user.items()]


def create_checkin(
    db: Session,
    actor: ActorContext,
    *,
    title: Optional[str],
    session_date: Optional[date],
    group_id: Optional[UUID] = None,
) -> CheckIn:
    if not actor.is_coach:
        raise ForbiddenError("Only coaches can create check-ins")

    target_group = group_id or actor.primary_group_id
    if target_group is None:
        raise ValidationError("Join or create a group first", field="group_id")
    if not actor.in_group(target_group):
        raise ForbiddenError("Not a coach of this group")

    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("Title is required", field="title")
    if session_date is None:
        raise ValidationError("Session date is required", field="session_date")

    checkin = CheckIn(
        group_id=target_group,
        coach_id=actor.user_id,
        title=clean_title,
        session_date=session_date,
        created_at=utcnow(),
    )
    db.add(checkin)
    db.flush()
    logger.info(
        "Check-in created",
        extra={"extra_fields": {"checkin_id": str(checkin.id), "group_id": str(target_group)}},
    )
    return checkin


def list_checkins(db: Session, actor: ActorContext) -> List[CheckIn]:
    """Check-ins of the actor's groups, newest first. Empty when the actor has no group."""
    if not actor.has_group:
        return []
    return (
        db.query(CheckIn)
        .filter(CheckIn.group_id.in_(list(actor.group_ids)))
        .order_by(CheckIn.session_date.desc(), CheckIn.created_at.desc())
        .all()
    )


def get_checkin(db: Session, checkin_id: UUID) -> Optional[CheckIn]:
    return db.get(CheckIn, checkin_id)


def _load_for_attendance(db: Session, actor: ActorContext, checkin_id: UUID) -> CheckIn:
    if not actor.is_coach:
        raise ForbiddenError("Only coaches can manage attendance")
    checkin = get_checkin(db, checkin_id)
    if checkin is None:
        raise NotFoundError("Check-in")
    ensure_attendance_access(actor, checkin)
    return checkin


def get_record(db: Session, checkin_id: UUID, group_id: UUID) -> Optional[AttendanceRecord]:
    return (
        db.query(AttendanceRecord)
        .filter(AttendanceRecord.checkin_id == checkin_id, AttendanceRecord.group_id == group_id)
        .first()
    )


def get_attendance_view(db: Session, actor: ActorContext, checkin_id: UUID) -> AttendanceView:
    checkin = _load_for_attendance(db, actor, checkin_id)
    record = get_record(db, checkin.id, checkin.group_id)

    entries = record.entries if record else []
    statuses = {_canonical_user_id(e.get("user_id")): e.get("status") for e in entries}
    roster = list_members(db, checkin.group_id, exclude_coaches=True)
    athletes = [RosterStatus(user=u, status=statuses.get(str(u.id))) for u in roster]
    return AttendanceView(checkin=checkin, record=record, athletes=athletes)


def submit_attendance(db: Session, actor: ActorContext, checkin_id: UUID, entries: Any) -> AttendanceRecord:
    """
    Store attendance for a check-in as one atomic upsert on (checkin_id, group_id).

    Conflicting writes are last-write-wins on entries/coach/session_date;
    created_at is only written by the insert branch.
    """
    checkin = _load_for_attendance(db, actor, checkin_id)
    clean = normalize_entries(entries)
    now = utcnow()

    stmt = upsert_insert(db, AttendanceRecord).values(
        id=uuid4(),
        checkin_id=checkin.id,
        group_id=checkin.group_id,
        coach_id=actor.user_id,
        session_date=checkin.session_date,
        entries=clean,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["checkin_id", "group_id"],
        set_={
            "entries": stmt.excluded.entries,
            "coach_id": stmt.excluded.coach_id,
            "session_date": stmt.excluded.session_date,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)

    record = get_record(db, checkin.id, checkin.group_id)
    # The identity map may hold a copy loaded before the upsert
    db.refresh(record)

    logger.info(
        "Attendance saved",
        extra={"extra_fields": {
            "checkin_id": str(checkin.id),
            "group_id": str(checkin.group_id),
            "entries": len(clean),
        }},
    )
    return record
