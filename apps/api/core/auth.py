"""
Authentication and authorization dependencies.

Turns a session token into an ActorContext: the caller's id, role and group
memberships, re-read from storage on every request. The role/group cached in
the token are never used for authorization decisions.

Provides FastAPI dependencies for:
- Getting the current actor (401 when no valid session)
- Optional actor (None instead of 401)
- Role-based access control
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional
from uuid import UUID

from fastapi import Depends, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import ForbiddenError, UnauthorizedError
from core.security import SESSION_COOKIE_NAME, decode_session_token, issue_session
from models import GroupMembership, User

# Use auto_error=False so a missing header falls through to the cookie / our own 401
bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class ActorContext:
    """Resolved identity for one request. Never persisted, never shared across requests."""
    user_id: UUID
    email: str
    role: str
    display_name: Optional[str] = None
    group_ids: FrozenSet[UUID] = frozenset()
    primary_group_id: Optional[UUID] = None

    @property
    def is_coach(self) -> bool:
        return self.role == User.ROLE_COACH

    @property
    def has_group(self) -> bool:
        return bool(self.group_ids)

    def in_group(self, group_id: Optional[UUID]) -> bool:
        return group_id is not None and group_id in self.group_ids


def load_actor(db: Session, user: User) -> ActorContext:
    """Build an ActorContext from a persisted user and its current memberships."""
    memberships = (
        db.query(GroupMembership)
        .filter(GroupMembership.user_id == user.id)
        .order_by(GroupMembership.joined_at.desc(), GroupMembership.id)
        .all()
    )
    group_ids = frozenset(m.group_id for m in memberships)
    # Most recently joined group is the one shown in the session / used as default
    primary = memberships[0].group_id if memberships else None
    return ActorContext(
        user_id=user.id,
        email=user.email,
        role=user.role or User.ROLE_ATHLETE,
        display_name=user.display_name,
        group_ids=group_ids,
        primary_group_id=primary,
    )


def resolve_actor(db: Session, token: Optional[str]) -> ActorContext:
    """
    Resolve the caller for a session token.

    Raises UnauthorizedError when the token is missing or invalid, and when the
    user row no longer exists (deleted account with a still-valid token).
    """
    payload = decode_session_token(token)
    if payload is None:
        raise UnauthorizedError("Invalid or expired session")

    user = db.get(User, payload.user_id)
    if user is None:
        raise UnauthorizedError("User not found")

    return load_actor(db, user)


def get_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[str]:
    """
    An explicit Authorization: Bearer header wins; otherwise the session cookie.
    """
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME) or None


def get_current_actor(
    token: Optional[str] = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> ActorContext:
    """
    Get the current authenticated actor.

    Raises UnauthorizedError (401) if the session is missing, invalid or stale.
    """
    if not token:
        raise UnauthorizedError("Not authenticated")
    return resolve_actor(db, token)


def get_optional_actor(
    token: Optional[str] = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> Optional[ActorContext]:
    """
    Get the current actor if a valid session is present.
    Returns None instead of raising.
    """
    if not token:
        return None
    try:
        return resolve_actor(db, token)
    except UnauthorizedError:
        return None


def require_role(allowed_roles: list[str]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/coach-only")
        def coach_endpoint(actor: ActorContext = Depends(require_role(["coach"]))):
            ...
    """
    def role_checker(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
        if actor.role not in allowed_roles:
            raise ForbiddenError(f"Access denied. Required roles: {allowed_roles}")
        return actor

    return role_checker


def require_coach(
    actor: ActorContext = Depends(require_role([User.ROLE_COACH]))
) -> ActorContext:
    """Require coach role."""
    return actor


def refresh_session(response: Response, db: Session, user_id: UUID) -> str:
    """
    Re-read the user and re-issue the session cookie.

    Called after signup/login and after any change to the session-visible
    fields (display name, group membership). Returns the new token.
    """
    user = db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    actor = load_actor(db, user)
    return issue_session(
        response,
        actor.user_id,
        actor.email,
        display_name=actor.display_name,
        role=actor.role,
        group_id=actor.primary_group_id,
    )
