from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime, date
from uuid import UUID
from typing import Any, Optional, List


# --- Accounts / session ---

class SignupRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None  # "coach" or anything else (=> athlete)


class LoginRequest(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    display_name: Optional[str] = None


class UserResponse(BaseModel):
    """Public user fields. Never carries password_hash."""
    id: UUID
    email: str
    display_name: Optional[str] = None
    role: str
    profile_complete: bool = False

    model_config = ConfigDict(from_attributes=True)


class GroupResponse(BaseModel):
    id: UUID
    name: str
    code: str
    coach_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    """Signup/login. The token is also set as the session cookie."""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class SessionResponse(BaseModel):
    """GET /v1/auth/session. user is null when there is no valid session."""
    user: Optional[UserResponse] = None
    group_id: Optional[UUID] = None
    groups: List[GroupResponse] = []


# --- Groups ---

class GroupCreate(BaseModel):
    name: Optional[str] = None


class GroupJoin(BaseModel):
    code: Optional[str] = None


class GroupLeave(BaseModel):
    group_id: Optional[UUID] = None  # None => leave every group


class MemberResponse(BaseModel):
    id: UUID
    email: str
    display_name: Optional[str] = None
    role: str

    model_config = ConfigDict(from_attributes=True)


# --- Logs ---

class LogCreate(BaseModel):
    emoji: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_group: Any = False  # Coerced with bool()
    notes: Optional[str] = None
    tags: Any = None  # Non-list input becomes []


class LogUpdate(BaseModel):
    """Partial update: only fields present in the request body are applied."""
    emoji: Optional[str] = None
    timestamp: Optional[datetime] = None
    is_group: Any = None
    notes: Optional[str] = None
    tags: Any = None


class LogResponse(BaseModel):
    id: UUID
    user_id: UUID
    user_name: Optional[str] = None
    emoji: str
    timestamp: datetime
    is_group: bool
    notes: str = ""
    tags: List[str] = []
    is_own: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class TagResponse(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TagListResponse(BaseModel):
    tags: List[TagResponse]


# --- Check-ins / attendance ---

class CheckInCreate(BaseModel):
    title: Optional[str] = None
    session_date: Optional[date] = None
    group_id: Optional[UUID] = None  # Defaults to the coach's primary group


class CheckInResponse(BaseModel):
    id: UUID
    group_id: UUID
    coach_id: UUID
    title: str
    session_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceSubmit(BaseModel):
    # Items are validated one by one in services.attendance; bad ones are dropped
    entries: List[Any] = Field(default_factory=list)


class AttendanceEntry(BaseModel):
    user_id: str
    status: str


class AttendanceAthlete(BaseModel):
    user_id: UUID
    display_name: Optional[str] = None
    email: str
    status: Optional[str] = None  # None => unrecorded


class AttendanceRecordResponse(BaseModel):
    id: UUID
    checkin_id: UUID
    group_id: UUID
    coach_id: UUID
    session_date: Optional[date] = None
    entries: List[AttendanceEntry] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceViewResponse(BaseModel):
    checkin: CheckInResponse
    record: Optional[AttendanceRecordResponse] = None
    athletes: List[AttendanceAthlete] = []


# --- Comments ---

class CommentCreate(BaseModel):
    text: Optional[str] = None


class CommentResponse(BaseModel):
    id: UUID
    log_id: UUID
    author_id: UUID
    author_name: Optional[str] = None
    author_role: str
    text: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommentListResponse(BaseModel):
    comments: List[CommentResponse] = []


# --- Announcements ---

class AnnouncementUpdate(BaseModel):
    text: Optional[str] = None


class AnnouncementResponse(BaseModel):
    id: UUID
    group_id: UUID
    coach_id: UUID
    author_name: Optional[str] = None
    text: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AnnouncementEnvelope(BaseModel):
    announcement: Optional[AnnouncementResponse] = None
