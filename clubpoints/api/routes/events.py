"""
clubpoints.api.routes.events — Attendance, submission, revert & drafts
=======================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from clubpoints.api.deps import flow_response, get_engine
from clubpoints.database.models import AttendanceStatus, EventCategory
from clubpoints.services import ledger_service, query_service

router = APIRouter(prefix="/events", tags=["events"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AttendanceEntry(BaseModel):
    member_id: int
    status: AttendanceStatus
    notes: str | None = None


class AttendanceSubmission(BaseModel):
    event_name: str = Field(min_length=1)
    event_type: str
    attendance: list[AttendanceEntry]


class EventSubmission(BaseModel):
    name: str = Field(min_length=1)
    category: EventCategory
    attendance: list[AttendanceEntry] = []
    selected_members: list[int] = []
    social_points: int = 0
    custom_rules: dict[AttendanceStatus, int] | None = None
    custom_event_type: str | None = None
    event_id: int | None = None  # submit an existing draft


class DraftAttendance(BaseModel):
    records: list[AttendanceEntry]


def _notes(entries: list[AttendanceEntry]) -> dict[int, str]:
    return {e.member_id: e.notes for e in entries if e.notes}


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
@router.get("")
def list_events(include_drafts: bool = False, engine: Engine = Depends(get_engine)):
    return {"events": query_service.list_events(engine, include_drafts=include_drafts)}


@router.get("/{event_id}/attendance")
def get_attendance(event_id: int, engine: Engine = Depends(get_engine)):
    """Attendance rows for an event (draft or submitted)."""
    records = query_service.event_attendance(engine, event_id)
    if records is None:
        raise HTTPException(404, "Event not found")
    return {"event_id": event_id, "records": records}


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------
@router.put("/{event_id}/attendance")
def save_draft_attendance(
    event_id: int,
    body: DraftAttendance,
    engine: Engine = Depends(get_engine),
):
    """Replace a draft's attendance rows."""
    return flow_response(ledger_service.save_draft_attendance(
        engine,
        event_id=event_id,
        entries=[(r.member_id, r.status.value, r.notes) for r in body.records],
    ))


@router.delete("/{event_id}")
def delete_event(event_id: int, engine: Engine = Depends(get_engine)):
    """Delete a draft or reverted event."""
    return flow_response(ledger_service.delete_event(engine, event_id=event_id))


# ---------------------------------------------------------------------------
# Ledger flows
# ---------------------------------------------------------------------------
@router.post("/attendance")
def record_attendance(body: AttendanceSubmission, engine: Engine = Depends(get_engine)):
    """Create a submitted event and apply the standard point rules."""
    return flow_response(ledger_service.record_attendance(
        engine,
        event_name=body.event_name,
        event_type=body.event_type,
        attendance=[(a.member_id, a.status.value) for a in body.attendance],
        notes=_notes(body.attendance),
    ))


@router.post("/submit")
def submit_event(body: EventSubmission, engine: Engine = Depends(get_engine)):
    """Submit a social, meeting or custom event (new, or an existing draft)."""
    custom_rules = (
        {status.value: points for status, points in body.custom_rules.items()}
        if body.custom_rules else None
    )
    return flow_response(ledger_service.submit_event(
        engine,
        name=body.name,
        category=body.category,
        attendance={a.member_id: a.status.value for a in body.attendance},
        selected_members=body.selected_members,
        social_points=body.social_points,
        custom_rules=custom_rules,
        custom_event_type=body.custom_event_type,
        event_id=body.event_id,
        notes=_notes(body.attendance),
    ))


@router.post("/{event_id}/revert")
def revert_event(event_id: int, engine: Engine = Depends(get_engine)):
    """Undo a submitted event and return it to draft."""
    return flow_response(ledger_service.revert_event(engine, event_id=event_id))
