"""
Group membership store.

Groups are coach-owned and joined by a short human-readable code. Membership
is set-valued (group_membership rows); joining or leaving never mutates the
group itself. "Same group" for every visibility decision means "shares at
least one group_membership row".
"""

from __future__ import annotations

import logging
import secrets
from typing import Iterable, List, Optional, Set
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.config import settings
from core.database import upsert_insert
from core.exceptions import ForbiddenError, InternalError, NotFoundError, ValidationError
from models import GroupMembership, TrainingGroup, User, utcnow

logger = logging.getLogger(__name__)

# No 0/O, 1/I: codes are read aloud and typed by hand
GROUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
GROUP_NAME_MIN_LENGTH = 2


def generate_group_code(length: Optional[int] = None) -> str:
    n = length or settings.GROUP_CODE_LENGTH
    return "".join(secrets.choice(GROUP_CODE_ALPHABET) for _ in range(n))


def normalize_group_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def get_group(db: Session, group_id: UUID) -> Optional[TrainingGroup]:
    return db.get(TrainingGroup, group_id)


def get_group_by_code(db: Session, code: str) -> Optional[TrainingGroup]:
    norm = normalize_group_code(code)
    if not norm:
        return None
    return db.query(TrainingGroup).filter(TrainingGroup.code == norm).first()


def _code_exists(db: Session, code: str) -> bool:
    return db.query(TrainingGroup.id).filter(TrainingGroup.code == code).first() is not None


def add_membership(db: Session, *, user_id: UUID, group_id: UUID) -> None:
    """Enroll a user in a group. A second enrollment is a no-op."""
    stmt = (
        upsert_insert(db, GroupMembership)
        .values(id=uuid4(), user_id=user_id, group_id=group_id, joined_at=utcnow())
        .on_conflict_do_nothing(index_elements=["user_id", "group_id"])
    )
    db.execute(stmt)


def create_group(db: Session, actor: ActorContext, name: Optional[str]) -> TrainingGroup:
    """
    Create a group owned by the acting coach and enroll the coach in it.

    The code is drawn at random and checked for existence; the insert itself
    is ON CONFLICT DO NOTHING on the code, so a concurrent creator that drew
    the same code makes this attempt insert zero rows and we draw again.
    """
    if not actor.is_coach:
        raise ForbiddenError("Only coaches can create groups")

    clean_name = (name or "").strip()
    if len(clean_name) < GROUP_NAME_MIN_LENGTH:
        raise ValidationError(
            f"Group name must be at least {GROUP_NAME_MIN_LENGTH} characters", field="name"
        )

    group_id = None
    for attempt in range(settings.GROUP_CODE_MAX_ATTEMPTS):
        code = generate_group_code()
        if _code_exists(db, code):
            continue
        candidate_id = uuid4()
        stmt = (
            upsert_insert(db, TrainingGroup)
            .values(
                id=candidate_id,
                name=clean_name,
                code=code,
                coach_id=actor.user_id,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["code"])
        )
        result = db.execute(stmt)
        if result.rowcount == 1:
            group_id = candidate_id
            break
        logger.info("Group code collision on insert, retrying (attempt %d)", attempt + 1)

    if group_id is None:
        logger.error(
            "Could not allocate a unique group code",
            extra={"extra_fields": {"attempts": settings.GROUP_CODE_MAX_ATTEMPTS}},
        )
        raise InternalError("Could not allocate a group code")

    add_membership(db, user_id=actor.user_id, group_id=group_id)
    group = db.get(TrainingGroup, group_id)

    logger.info(
        "Group created",
        extra={"extra_fields": {"group_id": str(group_id), "coach_id": str(actor.user_id)}},
    )
    return group


def join_group(db: Session, actor: ActorContext, code: Optional[str]) -> TrainingGroup:
    """Join by code, case-insensitively. Joining a group twice is a no-op."""
    norm = normalize_group_code(code)
    if not norm:
        raise ValidationError("Group code is required", field="code")

    group = get_group_by_code(db, norm)
    if group is None:
        raise NotFoundError("Group")

    add_membership(db, user_id=actor.user_id, group_id=group.id)
    logger.info(
        "Group joined",
        extra={"extra_fields": {"group_id": str(group.id), "user_id": str(actor.user_id)}},
    )
    return group


def leave_group(db: Session, actor: ActorContext, group_id: Optional[UUID] = None) -> int:
    """
    Drop the actor's membership in group_id, or in every group when None.

    Leaving a group the actor is not in succeeds silently. Returns the number
    of memberships removed.
    """
    q = db.query(GroupMembership).filter(GroupMembership.user_id == actor.user_id)
    if group_id is not None:
        q = q.filter(GroupMembership.group_id == group_id)
    removed = q.delete(synchronize_session=False)

    if removed:
        logger.info(
            "Group left",
            extra={"extra_fields": {
                "user_id": str(actor.user_id),
                "group_id": str(group_id) if group_id else None,
                "removed": removed,
            }},
        )
    return removed


def group_ids_for_user(db: Session, user_id: UUID) -> Set[UUID]:
    rows = db.query(GroupMembership.group_id).filter(GroupMembership.user_id == user_id).all()
    return {r[0] for r in rows}


def member_ids_subquery(group_ids: Iterable[UUID]):
    """SELECT of user ids holding a membership in any of group_ids."""
    return select(GroupMembership.user_id).where(GroupMembership.group_id.in_(list(group_ids)))


def is_member(db: Session, user_id: UUID, group_ids: Iterable[UUID]) -> bool:
    """True when user_id belongs to at least one of group_ids."""
    ids = list(group_ids)
    if not ids:
        return False
    return (
        db.query(GroupMembership.id)
        .filter(GroupMembership.user_id == user_id, GroupMembership.group_id.in_(ids))
        .first()
        is not None
    )


def list_members(db: Session, group_id: UUID, exclude_coaches: bool = False) -> List[User]:
    """Users holding a membership in group_id, sorted by display name."""
    q = (
        db.query(User)
        .join(GroupMembership, GroupMembership.user_id == User.id)
        .filter(GroupMembership.group_id == group_id)
    )
    if exclude_coaches:
        q = q.filter(User.role != User.ROLE_COACH)
    users = q.all()
    return sorted(users, key=lambda u: ((u.display_name or "").lower(), u.email))


def list_members_for_actor(db: Session, actor: ActorContext, group_id: UUID) -> List[User]:
    """
    Member listing as seen by an actor.

    An actor with no group gets an empty list ("no group" is a steady state);
    an actor who belongs to other groups but not this one is refused.
    """
    if not actor.has_group:
        return []
    if not actor.in_group(group_id):
        raise ForbiddenError("Not a member of this group")
    return list_members(db, group_id)


def list_groups_for_user(db: Session, user_id: UUID) -> List[TrainingGroup]:
    return (
        db.query(TrainingGroup)
        .join(GroupMembership, GroupMembership.group_id == TrainingGroup.id)
        .filter(GroupMembership.user_id == user_id)
        .order_by(GroupMembership.joined_at.desc())
        .all()
    )


def migrate_legacy_memberships(db: Session) -> int:
    """
    Fold app_user.legacy_group_id into group_membership rows.

    Runs once at startup; rerunning is harmless because the legacy column is
    cleared as each user is migrated. Dangling legacy ids (group deleted) are
    cleared without creating a membership. Caller commits.
    """
    users = db.query(User).filter(User.legacy_group_id.isnot(None)).all()
    migrated = 0
    for user in users:
        if db.get(TrainingGroup, user.legacy_group_id) is not None:
            add_membership(db, user_id=user.id, group_id=user.legacy_group_id)
            migrated += 1
        else:
            logger.warning(
                "Dropping legacy group reference to missing group",
                extra={"extra_fields": {"user_id": str(user.id), "group_id": str(user.legacy_group_id)}},
            )
        user.legacy_group_id = None
    if users:
        db.flush()
        logger.info("Migrated legacy memberships", extra={"extra_fields": {"migrated": migrated}})
    return migrated
