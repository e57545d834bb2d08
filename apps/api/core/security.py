"""
Session token service and password hashing.

Provides:
- Password hashing (bcrypt)
- Signed, time-limited session tokens (JWT, HS256)
- Session cookie issue / clear helpers

A session token is a bearer credential. It is the only source of "who is
calling"; the role and group it carries are a display convenience and are
re-read from storage on every request (see core/auth.py).

SECURITY REQUIREMENTS:
- SECRET_KEY must be set via environment variable
- SECRET_KEY must be cryptographically secure (32+ characters)
- Token contents are never logged
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import bcrypt
from fastapi import Response
from jose import JWTError, jwt

from core.config import settings

# JWT settings - SECRET_KEY is required by config.py, will fail at startup if not set
SECRET_KEY = settings.SECRET_KEY

# Validate SECRET_KEY strength at module load
if len(SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

ALGORITHM = "HS256"
SESSION_TTL = timedelta(days=settings.SESSION_TTL_DAYS)
SESSION_COOKIE_NAME = settings.SESSION_COOKIE_NAME


@dataclass(frozen=True)
class SessionPayload:
    """Verified claims of a session token."""
    user_id: UUID
    email: str
    display_name: Optional[str] = None
    role: Optional[str] = None
    group_id: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """Hash a password."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def create_session_token(
    user_id,
    email: str,
    display_name: Optional[str] = None,
    role: Optional[str] = None,
    group_id=None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed session token valid for SESSION_TTL (7 days) unless overridden."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else SESSION_TTL)

    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    # Optional claims are omitted rather than sent as null
    if display_name:
        claims["display_name"] = display_name
    if role:
        claims["role"] = role
    if group_id:
        claims["group_id"] = str(group_id)

    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: Optional[str]) -> Optional[SessionPayload]:
    """
    Verify a session token.

    Fails closed: a bad signature, malformed token, expired token or missing
    required claim all return None. There is no partially-trusted result.
    """
    if not token:
        return None
    try:
        claims = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require_exp": True, "require_iat": True, "require_sub": True},
        )
    except JWTError:
        return None

    email = claims.get("email")
    if not isinstance(email, str) or not email:
        return None
    try:
        user_id = UUID(claims["sub"])
    except (ValueError, TypeError, KeyError):
        return None

    try:
        issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    except (ValueError, TypeError, OverflowError):
        return None

    return SessionPayload(
        user_id=user_id,
        email=email,
        display_name=claims.get("display_name"),
        role=claims.get("role"),
        group_id=claims.get("group_id"),
        issued_at=issued_at,
        expires_at=expires_at,
    )


def issue_session(
    response: Response,
    user_id,
    email: str,
    display_name: Optional[str] = None,
    role: Optional[str] = None,
    group_id=None,
) -> str:
    """
    Sign a fresh token and set it as the session cookie.

    Replaces any previous cookie. Earlier tokens stay valid until they expire;
    there is no revocation list.
    """
    token = create_session_token(
        user_id, email, display_name=display_name, role=role, group_id=group_id,
    )
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=int(SESSION_TTL.total_seconds()),
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return token


def clear_session(response: Response) -> None:
    """Delete the session cookie."""
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
