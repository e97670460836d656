"""
clubpoints.services.query_service — Read Models
================================================

Read-only views for the dashboard: leaderboard, events, attendance rows and
point history.  Returns plain dicts ready for JSON.
"""

from __future__ import annotations

from sqlalchemy import Engine, select
from sqlalchemy.orm import selectinload

from clubpoints.constants import DEFAULT_HISTORY_LIMIT, MANUAL_ADJUSTMENT_LABEL
from clubpoints.database.engine import get_session
from clubpoints.database.models import (
    AttendanceRecord,
    Event,
    Member,
    PointHistory,
)
from clubpoints.engine.ranking import rank_order


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def leaderboard(engine: Engine, include_inactive: bool = True) -> list[dict]:
    """Active members in rank order, then (optionally) inactive ones unranked."""
    with get_session(engine) as session:
        members = session.scalars(select(Member)).all()

    active = rank_order(m for m in members if m.is_active)
    rows = [
        {
            "id": m.id,
            "rank": rank,
            "name": m.name,
            "points": m.points,
            "status": m.status,
            "rank_change": m.rank_change,
            "photo_url": m.photo_url,
        }
        for rank, m in enumerate(active, start=1)
    ]
    if include_inactive:
        rows.extend(
            {
                "id": m.id,
                "rank": None,
                "name": m.name,
                "points": m.points,
                "status": m.status,
                "rank_change": 0,
                "photo_url": m.photo_url,
            }
            for m in rank_order(m for m in members if not m.is_active)
        )
    return rows


def list_events(engine: Engine, include_drafts: bool = False) -> list[dict]:
    """Events newest first; drafts only when asked for."""
    stmt = select(Event).order_by(Event.date.desc(), Event.id.desc())
    if not include_drafts:
        stmt = stmt.where(Event.is_draft.is_(False))

    with get_session(engine) as session:
        events = session.scalars(stmt).all()
        return [
            {
                "id": e.id,
                "name": e.name,
                "event_type": e.event_type,
                "date": _iso(e.date),
                "is_draft": e.is_draft,
                "is_reverted": e.is_reverted,
                "poll_event_id": e.poll_event_id,
                "custom_rules": e.custom_rules,
                "selected_members": e.selected_members,
            }
            for e in events
        ]


def event_attendance(engine: Engine, event_id: int) -> list[dict] | None:
    """Attendance rows for one event, or ``None`` if the event does not exist."""
    with get_session(engine) as session:
        if session.get(Event, event_id) is None:
            return None
        records = session.scalars(
            select(AttendanceRecord)
            .where(AttendanceRecord.event_id == event_id)
            .options(selectinload(AttendanceRecord.member))
            .order_by(AttendanceRecord.id)
        ).all()
        return [
            {
                "id": r.id,
                "member_id": r.member_id,
                "member_name": r.member.name,
                "status": r.status,
                "points_change": r.points_change,
                "notes": r.notes,
            }
            for r in records
        ]


def point_history(
    engine: Engine,
    member_id: int | None = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[dict]:
    """Newest ledger rows first, with member and event names."""
    stmt = (
        select(PointHistory)
        .options(selectinload(PointHistory.member), selectinload(PointHistory.event))
        .order_by(PointHistory.timestamp.desc(), PointHistory.id.desc())
        .limit(limit)
    )
    if member_id is not None:
        stmt = stmt.where(PointHistory.member_id == member_id)

    with get_session(engine) as session:
        rows = session.scalars(stmt).all()
        return [
            {
                "id": h.id,
                "member_id": h.member_id,
                "member_name": h.member.name,
                "event_id": h.event_id,
                "event_name": h.event.name if h.event else MANUAL_ADJUSTMENT_LABEL,
                "points_change": h.points_change,
                "reason": h.reason,
                "new_total": h.new_total,
                "timestamp": _iso(h.timestamp),
            }
            for h in rows
        ]
