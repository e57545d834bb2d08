from sqlalchemy import Column, Boolean, CheckConstraint, Date, DateTime, ForeignKey, JSON, Text, String, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from core.database import Base
import uuid
from typing import List, Optional
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(Base):
    """
    Athlete or coach account.

    Group membership lives in GroupMembership (set-valued). legacy_group_id is
    the old single-group column; it is only read by
    services.group_membership.migrate_legacy_memberships() at startup.
    """
    __tablename__ = "app_user"

    ROLE_ATHLETE = "athlete"
    ROLE_COACH = "coach"
    ROLES = (ROLE_ATHLETE, ROLE_COACH)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    email = Column(Text, unique=True, nullable=False)  # Stored lowercased
    password_hash = Column(Text, nullable=True)
    display_name = Column(Text, nullable=True)
    role = Column(Text, default=ROLE_ATHLETE, nullable=False)
    profile_complete = Column(Boolean, default=False, nullable=False)

    # --- LEGACY MEMBERSHIP (pre set-valued membership) ---
    legacy_group_id = Column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('athlete', 'coach')", name="ck_app_user_role"),
    )

    # --- RELATIONSHIPS ---
    memberships = relationship("GroupMembership", back_populates="user", cascade="all, delete-orphan")


class TrainingGroup(Base):
    """Coach-owned group. Joining or leaving never mutates this row."""
    __tablename__ = "training_group"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    code = Column(String(16), nullable=False)  # Human-readable join code, stored uppercase
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_training_group_code"),
    )

    memberships = relationship("GroupMembership", back_populates="group", cascade="all, delete-orphan")


class GroupMembership(Base):
    __tablename__ = "group_membership"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("training_group.id", ondelete="CASCADE"), nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "group_id", name="uq_group_membership_user_group"),
        Index("ix_group_membership_group_id", "group_id"),
    )

    user = relationship("User", back_populates="memberships")
    group = relationship("TrainingGroup", back_populates="memberships")


class LogEntry(Base):
    """
    Emoji-tagged training log.

    user_id is the owner and never changes. is_group=True grants read access
    to the owner's group-mates; it never grants write access.
    """
    __tablename__ = "log_entry"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    emoji = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    is_group = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, default="", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("User", lazy="joined")
    tag_links = relationship(
        "LogEntryTag",
        back_populates="log",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LogEntryTag.name",
    )
    comments = relationship("Comment", back_populates="log", cascade="all, delete-orphan")

    @property
    def tags(self) -> List[str]:
        return [link.name for link in self.tag_links]


class LogEntryTag(Base):
    """Tag name attached to one log. Names are normalized lowercase."""
    __tablename__ = "log_entry_tag"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    log_id = Column(Uuid(as_uuid=True), ForeignKey("log_entry.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("log_id", "name", name="uq_log_entry_tag_log_name"),
        Index("ix_log_entry_tag_name", "name"),
    )

    log = relationship("LogEntry", back_populates="tag_links")


class Tag(Base):
    """Per-user tag registry. created_at is set on first insert only."""
    __tablename__ = "tag"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tag_user_name"),
    )


class CheckIn(Base):
    """Coach-defined attendance session bound to one group."""
    __tablename__ = "checkin"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("training_group.id"), nullable=False, index=True)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    title = Column(Text, nullable=False)
    session_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class AttendanceRecord(Base):
    """
    Sparse attendance for one check-in.

    entries is a list of {"user_id": str, "status": "present"|"absent"|"excused"}.
    A roster member with no entry is unrecorded, not absent.
    """
    __tablename__ = "attendance_record"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    checkin_id = Column(Uuid(as_uuid=True), ForeignKey("checkin.id"), nullable=False)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("training_group.id"), nullable=False)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    session_date = Column(Date, nullable=True)
    entries = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # One record per (checkin, group); resubmission updates in place
    __table_args__ = (
        UniqueConstraint("checkin_id", "group_id", name="uq_attendance_record_checkin_group"),
    )


class Comment(Base):
    """Feedback comment on a log. Author name/role are snapshotted at post time."""
    __tablename__ = "log_comment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    log_id = Column(Uuid(as_uuid=True), ForeignKey("log_entry.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    author_name = Column(Text, nullable=True)
    author_role = Column(Text, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    log = relationship("LogEntry", back_populates="comments")


class Announcement(Base):
    """
    The current coach announcement of a group; at most one per group.

    Posting again replaces the text in place; created_at keeps the first post.
    """
    __tablename__ = "group_announcement"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid(as_uuid=True), ForeignKey("training_group.id", ondelete="CASCADE"), nullable=False)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False)
    author_name = Column(Text, nullable=True)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("group_id", name="uq_group_announcement_group"),
    )
