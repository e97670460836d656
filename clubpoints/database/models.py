"""
clubpoints.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- members              — Leaderboard members (points, status, rank snapshot)
- events               — Meetings / socials, draft until submitted
- attendance_records   — One row per (event, member), delta captured at write time
- point_history        — Append-only points ledger
- poll_member_mappings — Cached poll person name → member resolution
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all clubpoints ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class MemberStatus(enum.StrEnum):
    """Only ACTIVE members take part in ranking."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class AttendanceStatus(enum.StrEnum):
    """Per-member attendance outcome for an event."""
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED_ABSENT = "excused_absent"
    EXCUSED_LATE = "excused_late"
    INACTIVE = "inactive"


class EventCategory(enum.StrEnum):
    """Structured categories accepted by the event submission flow."""
    ACTIVE_MEETING = "active_meeting"
    EXEC_MEETING = "exec_meeting"
    SOCIAL = "social"
    CUSTOM = "custom"


# ---------------------------------------------------------------------------
# Members — one row per leaderboard entry
# ---------------------------------------------------------------------------
class Member(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=MemberStatus.ACTIVE.value
    )
    # Signed movement computed at the last reconciliation (+ = moved up)
    rank_change: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Rank written at the last reconciliation; NULL until first ranked
    last_rank: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    photo_url: Mapped[str | None] = mapped_column(String(500), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    attendance: Mapped[list[AttendanceRecord]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )
    history: Mapped[list[PointHistory]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )
    poll_mappings: Mapped[list[PollMemberMapping]] = relationship(
        back_populates="member", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_members_status_points", "status", "points"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Member id={self.id} name={self.name!r} pts={self.points}>"


# ---------------------------------------------------------------------------
# Events — drafts are editable, submitted events have moved the ledger
# ---------------------------------------------------------------------------
class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    is_draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_reverted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    custom_rules: Mapped[dict | None] = mapped_column(JSONB, nullable=True, default=None)
    selected_members: Mapped[list | None] = mapped_column(JSONB, nullable=True, default=None)
    # Detected poll id (e.g. "meeting_tonight_2025_11_13") for imported drafts
    poll_event_id: Mapped[str | None] = mapped_column(String(200), nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    attendance: Mapped[list[AttendanceRecord]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("poll_event_id", name="uq_events_poll_event_id"),
        Index("ix_events_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Event id={self.id} name={self.name!r} draft={self.is_draft}>"


# ---------------------------------------------------------------------------
# AttendanceRecord — delta captured when written, never recomputed
# ---------------------------------------------------------------------------
class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    points_change: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    event: Mapped[Event] = relationship(back_populates="attendance")
    member: Mapped[Member] = relationship(back_populates="attendance")

    __table_args__ = (
        UniqueConstraint("event_id", "member_id", name="uq_attendance_event_member"),
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord event={self.event_id} member={self.member_id} "
            f"status={self.status!r} delta={self.points_change}>"
        )


# ---------------------------------------------------------------------------
# PointHistory — append-only ledger
# ---------------------------------------------------------------------------
class PointHistory(Base):
    __tablename__ = "point_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    # NULL = manual adjustment
    event_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True
    )
    points_change: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    new_total: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    member: Mapped[Member] = relationship(back_populates="history")
    event: Mapped[Event | None] = relationship()

    __table_args__ = (
        Index("ix_point_history_member_time", "member_id", "timestamp"),
        Index("ix_point_history_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<PointHistory id={self.id} member={self.member_id} "
            f"delta={self.points_change} total={self.new_total}>"
        )


# ---------------------------------------------------------------------------
# PollMemberMapping — remembered poll name → member matches
# ---------------------------------------------------------------------------
class PollMemberMapping(Base):
    __tablename__ = "poll_member_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    person_name: Mapped[str] = mapped_column(String(200), nullable=False)
    member_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    member: Mapped[Member] = relationship(back_populates="poll_mappings")

    __table_args__ = (
        UniqueConstraint("person_name", name="uq_poll_mappings_person"),
    )

    def __repr__(self) -> str:
        return f"<PollMemberMapping person={self.person_name!r} member={self.member_id}>"
