"""
clubpoints.services.poll_service — Poll Import & Draft Sync
============================================================

Turns rows fetched from the poll source into draft events:

1. :func:`detect_new_events` lists polls not yet linked to an event.
2. :func:`create_draft_from_poll` creates a draft ``Active Meeting`` with one
   attendance row per active member ("no" → excused absent, else absent).
3. :func:`sync_responses` re-reads the poll for an existing draft ("yes" now
   marks present).  Safe to repeat; the live-sync loop calls it periodically.

Draft rows carry ``points_change = 0``.  Nothing here touches balances; the
ledger only moves when the draft is submitted.

Person names are resolved against ``poll_member_mappings`` first, then by
the fuzzy rule in :func:`clubpoints.engine.polls.names_match`.  New fuzzy
matches are remembered so later imports resolve the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from clubpoints.constants import ACTIVE_MEETING
from clubpoints.database.engine import get_session
from clubpoints.database.models import (
    AttendanceRecord,
    Event,
    Member,
    MemberStatus,
    PollMemberMapping,
)
from clubpoints.engine.polls import (
    PollEvent,
    PollResponse,
    detect_events,
    draft_status,
    names_match,
    responses_for_event,
    sync_status,
)
from clubpoints.services.errors import (
    FlowResult,
    InvalidStateError,
    NotFoundError,
    run_flow,
)
from clubpoints.services.reconciler import ledger_transaction

logger = logging.getLogger(__name__)

Rows = Sequence[Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------
def detect_new_events(
    engine: Engine, rows: Rows, today: date | None = None
) -> list[PollEvent]:
    """Polls found in *rows* that no event is linked to yet."""
    detected = detect_events(rows, today)
    with get_session(engine) as session:
        linked = set(session.scalars(
            select(Event.poll_event_id).where(Event.poll_event_id.is_not(None))
        ).all())
    return [e for e in detected if e.event_id not in linked]


def _find_poll(rows: Rows, poll_event_id: str, today: date | None) -> PollEvent:
    for event in detect_events(rows, today):
        if event.event_id == poll_event_id:
            return event
    raise NotFoundError(f"Poll {poll_event_id!r} not found in the poll source")


# ---------------------------------------------------------------------------
# Identity resolution (mapping cache + fuzzy match)
# ---------------------------------------------------------------------------
def match_responses(
    session: Session,
    members: Sequence[Member],
    responses: Sequence[PollResponse],
) -> dict[int, PollResponse | None]:
    """Pair each member with at most one poll response.

    Stored mappings win.  Fuzzy matching only considers responses whose
    person is not already mapped to a different member; each new fuzzy match
    is saved to ``poll_member_mappings``.
    """
    mapped: dict[str, int] = {
        m.person_name: m.member_id
        for m in session.scalars(select(PollMemberMapping)).all()
    }

    matches: dict[int, PollResponse | None] = {m.id: None for m in members}
    for resp in responses:
        member_id = mapped.get(resp.person.strip())
        if member_id in matches and matches[member_id] is None:
            matches[member_id] = resp

    claimed = {r.person.strip() for r in matches.values() if r is not None}
    for member in members:
        if matches[member.id] is not None:
            continue
        for resp in responses:
            person = resp.person.strip()
            if person in claimed or mapped.get(person, member.id) != member.id:
                continue
            if names_match(person, member.name):
                matches[member.id] = resp
                claimed.add(person)
                if person not in mapped:
                    session.add(PollMemberMapping(person_name=person, member_id=member.id))
                    mapped[person] = member.id
                    logger.debug("Mapped poll person %r → member %d", person, member.id)
                break

    return matches


def _active_members(session: Session) -> list[Member]:
    return list(session.scalars(
        select(Member)
        .where(Member.status == MemberStatus.ACTIVE.value)
        .order_by(Member.name, Member.id)
    ).all())


# ---------------------------------------------------------------------------
# Draft creation
# ---------------------------------------------------------------------------
def _create_draft_from_poll(
    engine: Engine,
    poll_event_id: str,
    rows: Rows,
    person_field: str,
    today: date | None,
) -> FlowResult:
    poll = _find_poll(rows, poll_event_id, today)
    responses = responses_for_event(rows, poll, person_field)

    with ledger_transaction(engine) as session:
        existing = session.scalar(
            select(Event.id).where(Event.poll_event_id == poll.event_id)
        )
        if existing is not None:
            raise InvalidStateError(
                f"A draft already exists for poll {poll.event_id!r} (event {existing})"
            )

        event = Event(
            name=poll.event_name,
            event_type=ACTIVE_MEETING,
            date=datetime.combine(poll.date, time.min, tzinfo=timezone.utc),
            is_draft=True,
            poll_event_id=poll.event_id,
        )
        session.add(event)
        session.flush()

        members = _active_members(session)
        matches = match_responses(session, members, responses)
        for member in members:
            status, notes = draft_status(matches[member.id])
            session.add(AttendanceRecord(
                event_id=event.id,
                member_id=member.id,
                status=status.value,
                points_change=0,
                notes=notes,
            ))
        session.flush()
        event_id = event.id

    matched = sum(1 for r in matches.values() if r is not None)
    logger.info(
        "Draft %d created from poll %r: %d members, %d matched",
        event_id, poll.event_id, len(members), matched,
    )
    return FlowResult.ok(
        f'Draft event "{poll.event_name}" created',
        event_id=event_id,
        members=len(members),
        matched=matched,
    )


def create_draft_from_poll(
    engine: Engine,
    *,
    poll_event_id: str,
    rows: Rows,
    person_field: str = "Person",
    today: date | None = None,
) -> FlowResult:
    """Create a draft event pre-filled from the poll answers."""
    return run_flow(
        "create_draft_from_poll", _create_draft_from_poll,
        engine, poll_event_id, rows, person_field, today,
    )


# ---------------------------------------------------------------------------
# Re-sync
# ---------------------------------------------------------------------------
def _syncable_draft(session: Session, event_id: int) -> Event:
    event = session.get(Event, event_id, with_for_update=True)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    if not event.is_draft:
        raise InvalidStateError(f"Event {event_id} is not a draft; sync is closed")
    if not event.poll_event_id:
        raise InvalidStateError(f"Event {event_id} is not linked to a poll")
    return event


def _sync_responses(
    engine: Engine, event_id: int, rows: Rows, person_field: str
) -> FlowResult:
    with ledger_transaction(engine) as session:
        event = _syncable_draft(session, event_id)

        poll = _find_poll(rows, event.poll_event_id, event.date.date() if event.date else None)
        responses = responses_for_event(rows, poll, person_field)

        members = _active_members(session)
        matches = match_responses(session, members, responses)
        records = {r.member_id: r for r in event.attendance}

        changed = 0
        for member in members:
            status, notes = sync_status(matches[member.id])
            record = records.get(member.id)
            if record is None:
                event.attendance.append(AttendanceRecord(
                    member_id=member.id,
                    status=status.value,
                    points_change=0,
                    notes=notes,
                ))
                changed += 1
            elif record.status != status.value or record.notes != notes:
                record.status = status.value
                record.notes = notes
                changed += 1

    logger.info("Draft %d synced from poll %r: %d rows changed", event_id, poll.event_id, changed)
    return FlowResult.ok(
        "Responses synced",
        event_id=event_id,
        updated=changed,
        members=len(members),
    )


def sync_responses(
    engine: Engine,
    *,
    event_id: int,
    rows: Rows,
    person_field: str = "Person",
) -> FlowResult:
    """Refresh a poll-linked draft's attendance from the latest poll rows."""
    return run_flow(
        "sync_responses", _sync_responses, engine, event_id, rows, person_field
    )


def _check_syncable(engine: Engine, event_id: int) -> FlowResult:
    with ledger_transaction(engine) as session:
        event = _syncable_draft(session, event_id)
        poll_event_id = event.poll_event_id
    return FlowResult.ok("Draft can be synced", event_id=event_id, poll_event_id=poll_event_id)


def check_syncable(engine: Engine, *, event_id: int) -> FlowResult:
    """Confirm *event_id* is a poll-linked draft without touching its rows."""
    return run_flow("check_syncable", _check_syncable, engine, event_id)
