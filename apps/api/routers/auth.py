"""
Authentication API endpoints.

Provides:
- Signup and login (session cookie + bearer token in the body)
- Logout
- Current session lookup
- Profile update (re-issues the session)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
import logging

from core.auth import ActorContext, get_current_actor, get_optional_actor, refresh_session
from core.database import get_db
from core.security import clear_session
from schemas import (
    AuthResponse,
    LoginRequest,
    ProfileUpdate,
    SessionResponse,
    SignupRequest,
    UserResponse,
)
from services import accounts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


def _auth_response(response: Response, db: Session, user) -> dict:
    token = refresh_session(response, db, user.id)
    return {"access_token": token, "token_type": "bearer", "user": user}


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Create an athlete or coach account and start a session."""
    user = accounts.signup(
        db,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
        role=payload.role,
    )
    db.commit()
    return _auth_response(response, db, user)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    user = accounts.authenticate(db, email=payload.email, password=payload.password)
    logger.info("User logged in", extra={"extra_fields": {"user_id": str(user.id)}})
    return _auth_response(response, db, user)


@router.post("/logout")
def logout(response: Response):
    clear_session(response)
    return {"success": True}


@router.get("/session", response_model=SessionResponse)
def get_session(
    actor: Optional[ActorContext] = Depends(get_optional_actor),
    db: Session = Depends(get_db),
):
    """Current user and groups. `user` is null without a valid session."""
    if actor is None:
        return SessionResponse()
    return accounts.describe_session(db, actor)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    payload: ProfileUpdate,
    response: Response,
    actor: ActorContext = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    user = accounts.update_profile(db, actor, display_name=payload.display_name)
    db.commit()
    refresh_session(response, db, actor.user_id)
    return user
