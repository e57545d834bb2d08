"""
Account service: signup, login, profile.

Emails are stored lowercased so uniqueness is case-insensitive.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import ActorContext
from core.config import settings
from core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from core.security import get_password_hash, verify_password
from models import TrainingGroup, User, utcnow
from services.group_membership import list_groups_for_user

logger = logging.getLogger(__name__)

DISPLAY_NAME_MIN_LENGTH = 2
# bcrypt only hashes the first 72 bytes; longer passwords are refused instead of truncated
PASSWORD_MAX_BYTES = 72


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _clean_display_name(display_name: Optional[str]) -> str:
    name = (display_name or "").strip()
    if len(name) < DISPLAY_NAME_MIN_LENGTH:
        raise ValidationError(
            f"Display name must be at least {DISPLAY_NAME_MIN_LENGTH} characters", field="display_name"
        )
    return name


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    norm = normalize_email(email)
    if not norm:
        return None
    return db.query(User).filter(User.email == norm).first()


def signup(
    db: Session,
    *,
    email: Optional[str],
    password: Optional[str],
    display_name: Optional[str],
    role: Optional[str] = None,
) -> User:
    norm = normalize_email(email)
    if not norm or not password or not display_name:
        raise ValidationError("Email, password and display name are required")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters", field="password"
        )
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes", field="password")
    name = _clean_display_name(display_name)

    if get_user_by_email(db, norm) is not None:
        raise ConflictError("Email already registered")

    user = User(
        email=norm,
        password_hash=get_password_hash(password),
        display_name=name,
        role=User.ROLE_COACH if role == User.ROLE_COACH else User.ROLE_ATHLETE,
        profile_complete=True,
        created_at=utcnow(),
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent signup with the same email won the unique index
        db.rollback()
        raise ConflictError("Email already registered")

    logger.info("User signed up", extra={"extra_fields": {"user_id": str(user.id), "role": user.role}})
    return user


def authenticate(db: Session, *, email: Optional[str], password: Optional[str]) -> User:
    """Return the user for valid credentials. Unknown email and wrong password look the same."""
    norm = normalize_email(email)
    if not norm or not password:
        raise ValidationError("Email and password are required")

    user = get_user_by_email(db, norm)
    if user is None or not user.password_hash:
        raise UnauthorizedError("Invalid email or password")
    try:
        ok = verify_password(password, user.password_hash)
    except ValueError:
        # Corrupt or non-bcrypt hash on the row
        logger.warning("Unverifiable password hash", extra={"extra_fields": {"user_id": str(user.id)}})
        ok = False
    if not ok:
        raise UnauthorizedError("Invalid email or password")
    return user


def update_profile(db: Session, actor: ActorContext, *, display_name: Optional[str]) -> User:
    name = _clean_display_name(display_name)
    user = db.get(User, actor.user_id)
    if user is None:
        raise NotFoundError("User")
    user.display_name = name
    user.profile_complete = True
    user.updated_at = utcnow()
    db.flush()
    return user


def describe_session(db: Session, actor: ActorContext) -> dict:
    """User row plus current groups, for the session endpoint."""
    user = db.get(User, actor.user_id)
    groups: List[TrainingGroup] = list_groups_for_user(db, actor.user_id)
    return {
        "user": user,
        "group_id": actor.primary_group_id,
        "groups": groups,
    }
