"""
clubpoints.services.ledger_service — Ledger Flows & Lifecycle
==============================================================

Caller-facing operations callable from the API (or a shell).  Each public
function returns a :class:`~clubpoints.services.errors.FlowResult` and never
raises for expected failures.  Point-moving flows build
:class:`~clubpoints.services.reconciler.Mutation` batches and run them
through :func:`~clubpoints.services.reconciler.reconcile`:

- ``adjust_points``      — one manual mutation, ``event_id`` NULL
- ``record_attendance``  — freeform batch for a new submitted event
- ``submit_event``       — social flat award, or rules-based meeting/custom
- ``revert_event``       — exact inverse of the stored attendance deltas
- ``recalculate_ranks``  — no mutations, ranks only
- ``set_member_status``  — activate / deactivate without a point change
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from sqlalchemy import Engine, func, select, update
from sqlalchemy.orm import Session

from clubpoints.constants import (
    REVERT_REASON,
    STARTING_POINTS,
    status_reason_text,
)
from clubpoints.database.engine import get_session
from clubpoints.database.models import (
    AttendanceRecord,
    AttendanceStatus,
    Event,
    EventCategory,
    Member,
    MemberStatus,
    PointHistory,
)
from clubpoints.engine.rules import event_type_for_category, resolve_delta
from clubpoints.services.errors import (
    FlowResult,
    InvalidStateError,
    NotFoundError,
    run_flow,
)
from clubpoints.services.reconciler import (
    Mutation,
    OldRanks,
    ledger_transaction,
    reconcile,
)

logger = logging.getLogger(__name__)

_EXCUSED = {AttendanceStatus.EXCUSED_ABSENT.value, AttendanceStatus.EXCUSED_LATE.value}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _get_member(session: Session, member_id: int) -> Member:
    member = session.get(Member, member_id)
    if member is None:
        raise NotFoundError(f"Member {member_id} not found")
    return member


def _get_event(session: Session, event_id: int) -> Event:
    # Row lock so a draft check holds until commit
    event = session.get(Event, event_id, with_for_update=True)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    return event


def _manual_reason(points_change: int) -> str:
    verb = "addition" if points_change >= 0 else "deduction"
    return f"Manual {verb} of {abs(points_change)} points"


def _status_mutation(
    member_id: int,
    status: str,
    delta: int,
    event_name: str,
    notes: str | None = None,
) -> Mutation:
    status = AttendanceStatus(status).value
    return Mutation(
        member_id=member_id,
        points_delta=delta,
        reason=f"{event_name} - {status_reason_text(status)}",
        status_override=(
            MemberStatus.INACTIVE.value if status == AttendanceStatus.INACTIVE else None
        ),
        attendance_status=status,
        notes=notes if status in _EXCUSED else None,
    )


def _dedupe(member_ids: Iterable[int]) -> list[int]:
    return list(dict.fromkeys(member_ids))


# ---------------------------------------------------------------------------
# Manual adjustment
# ---------------------------------------------------------------------------
def _adjust_points(
    engine: Engine,
    member_id: int,
    points_change: int,
    reason: str | None,
    update_ranks: bool,
) -> FlowResult:
    with ledger_transaction(engine) as session:
        member = _get_member(session, member_id)
        result = reconcile(
            session,
            [Mutation(
                member_id=member.id,
                points_delta=points_change,
                reason=reason or _manual_reason(points_change),
            )],
            include_ids=(member.id,),
            update_ranks=update_ranks,
            flow="adjust_points",
        )
        new_points = member.points

    return FlowResult.ok(
        "Points adjusted successfully",
        member_id=member_id,
        new_points=new_points,
        rank_change=result.rank_changes.get(member_id, 0),
    )


def adjust_points(
    engine: Engine,
    *,
    member_id: int,
    points_change: int,
    reason: str | None = None,
    update_ranks: bool = True,
) -> FlowResult:
    """Add or deduct points for one member.

    With ``update_ranks=False`` the displayed rank changes are left alone so
    a batch of adjustments can be followed by one :func:`recalculate_ranks`.
    """
    return run_flow(
        "adjust_points", _adjust_points,
        engine, member_id, points_change, reason, update_ranks,
    )


# ---------------------------------------------------------------------------
# Freeform attendance submission
# ---------------------------------------------------------------------------
def _record_attendance(
    engine: Engine,
    event_name: str,
    event_type: str,
    attendance: Sequence[tuple[int, str]],
    notes: Mapping[int, str],
) -> FlowResult:
    # Last status wins when a member is listed twice
    statuses = {member_id: AttendanceStatus(status).value for member_id, status in attendance}

    with ledger_transaction(engine) as session:
        event = Event(name=event_name, event_type=event_type, is_draft=False)
        session.add(event)
        session.flush()

        mutations = [
            _status_mutation(
                member_id, status, resolve_delta(event_type, status), event_name,
                notes=notes.get(member_id),
            )
            for member_id, status in statuses.items()
        ]
        result = reconcile(session, mutations, event_id=event.id, flow="record_attendance")
        event_id = event.id

    return FlowResult.ok(
        "Attendance recorded successfully",
        event_id=event_id,
        new_totals=result.new_totals,
        skipped=result.skipped,
    )


def record_attendance(
    engine: Engine,
    *,
    event_name: str,
    event_type: str,
    attendance: Sequence[tuple[int, str]],
    notes: Mapping[int, str] | None = None,
) -> FlowResult:
    """Create a submitted event and apply the standard rules per member.

    ``notes`` maps member ids to excuse text, kept for excused statuses only.
    """
    return run_flow(
        "record_attendance", _record_attendance,
        engine, event_name, event_type, attendance, notes or {},
    )


# ---------------------------------------------------------------------------
# Structured event submission
# ---------------------------------------------------------------------------
def _submit_event(
    engine: Engine,
    name: str,
    category: EventCategory | str,
    attendance: Mapping[int, str],
    selected_members: Sequence[int],
    social_points: int,
    custom_rules: Mapping[str, int] | None,
    custom_event_type: str | None,
    event_id: int | None,
    notes: Mapping[int, str],
) -> FlowResult:
    category = EventCategory(category)
    event_type = event_type_for_category(category, custom_event_type)
    is_social = category is EventCategory.SOCIAL
    selected = _dedupe(selected_members) if is_social else []
    rules = dict(custom_rules) if custom_rules else None

    with ledger_transaction(engine) as session:
        draft_notes: dict[int, str | None] = {}
        if event_id is not None:
            event = _get_event(session, event_id)
            if not event.is_draft:
                raise InvalidStateError(f"Event {event_id} has already been submitted")
            draft_notes = {r.member_id: r.notes for r in event.attendance}
            event.attendance.clear()
            session.flush()
            event.name = name
            event.event_type = event_type
            event.is_reverted = False
        else:
            event = Event(name=name, event_type=event_type)
            session.add(event)

        event.is_draft = False
        event.custom_rules = rules
        event.selected_members = selected or None
        session.flush()

        if is_social:
            mutations = [
                Mutation(
                    member_id=member_id,
                    points_delta=social_points,
                    reason=f"{name} - Social Event",
                    attendance_status=AttendanceStatus.PRESENT.value,
                )
                for member_id in selected
            ]
        else:
            mutations = [
                _status_mutation(
                    member_id,
                    status,
                    resolve_delta(event_type, status, rules),
                    name,
                    notes=notes.get(member_id, draft_notes.get(member_id)),
                )
                for member_id, status in attendance.items()
            ]

        result = reconcile(session, mutations, event_id=event.id, flow="submit_event")
        submitted_id = event.id

    return FlowResult.ok(
        "Event submitted successfully",
        event_id=submitted_id,
        new_totals=result.new_totals,
        skipped=result.skipped,
    )


def submit_event(
    engine: Engine,
    *,
    name: str,
    category: EventCategory | str,
    attendance: Mapping[int, str] | None = None,
    selected_members: Sequence[int] | None = None,
    social_points: int = 0,
    custom_rules: Mapping[str, int] | None = None,
    custom_event_type: str | None = None,
    event_id: int | None = None,
    notes: Mapping[int, str] | None = None,
) -> FlowResult:
    """Submit an event, moving the ledger exactly once.

    Social events give ``social_points`` to each of ``selected_members``;
    meeting and custom events resolve each member's status through the
    rules table, with ``custom_rules`` overriding per status.  Passing
    ``event_id`` submits an existing draft (its draft rows are replaced).
    Excuse ``notes`` given here win over notes saved on the draft.
    """
    return run_flow(
        "submit_event", _submit_event,
        engine,
        name,
        category,
        attendance or {},
        selected_members or [],
        social_points or 0,
        custom_rules,
        custom_event_type,
        event_id,
        notes or {},
    )


# ---------------------------------------------------------------------------
# Revert
# ---------------------------------------------------------------------------
def _revert_event(engine: Engine, event_id: int) -> FlowResult:
    with ledger_transaction(engine) as session:
        event = _get_event(session, event_id)
        if event.is_draft:
            raise InvalidStateError(f"Event {event_id} is a draft; only submitted events can be reverted")

        records = list(event.attendance)
        if not records:
            raise InvalidStateError(f"Event {event_id} has no attendance records to revert")

        mutations = [
            Mutation(
                member_id=record.member_id,
                points_delta=-record.points_change,
                reason=REVERT_REASON,
            )
            for record in records
        ]
        result = reconcile(session, mutations, event_id=event.id, flow="revert_event")

        event.is_draft = True
        event.is_reverted = True

    return FlowResult.ok(
        "Event reverted successfully",
        event_id=event_id,
        new_totals=result.new_totals,
        skipped=result.skipped,
    )


def revert_event(engine: Engine, *, event_id: int) -> FlowResult:
    """Undo a submitted event with the exact stored deltas and return it to draft."""
    return run_flow("revert_event", _revert_event, engine, event_id)


# ---------------------------------------------------------------------------
# Rank recalculation
# ---------------------------------------------------------------------------
def _recalculate_ranks(engine: Engine) -> FlowResult:
    with ledger_transaction(engine) as session:
        result = reconcile(
            session, [], old_ranks=OldRanks.STORED, flow="recalculate_ranks"
        )
    return FlowResult.ok(
        "Rankings recalculated successfully",
        members_updated=len(result.rank_changes),
        rank_changes=result.rank_changes,
    )


def recalculate_ranks(engine: Engine) -> FlowResult:
    """Refresh ``rank_change`` against the ranks stored at the last reconciliation."""
    return run_flow("recalculate_ranks", _recalculate_ranks, engine)


# ---------------------------------------------------------------------------
# Member lifecycle
# ---------------------------------------------------------------------------
def _member_dict(m: Member) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "points": m.points,
        "status": m.status,
        "rank_change": m.rank_change,
        "photo_url": m.photo_url,
    }


def _add_member(
    engine: Engine, name: str, starting_points: int, photo_url: str | None
) -> FlowResult:
    name = " ".join(name.split())
    if not name:
        raise InvalidStateError("Member name is required")

    with get_session(engine) as session:
        existing = session.scalar(
            select(Member.id).where(func.lower(Member.name) == name.lower())
        )
        if existing is not None:
            raise InvalidStateError("A member with this name already exists")

        member = Member(
            name=name,
            points=starting_points,
            status=MemberStatus.ACTIVE.value,
            rank_change=0,
            photo_url=photo_url,
        )
        session.add(member)
        session.flush()
        data = _member_dict(member)

    logger.info("Member %r added with %d points", name, starting_points)
    return FlowResult.ok(f"{name} has been added to the leaderboard", member=data)


def add_member(
    engine: Engine,
    *,
    name: str,
    starting_points: int = STARTING_POINTS,
    photo_url: str | None = None,
) -> FlowResult:
    """Create an active member with the starting balance."""
    return run_flow("add_member", _add_member, engine, name, starting_points, photo_url)


def _delete_member(engine: Engine, member_id: int) -> FlowResult:
    with ledger_transaction(engine) as session:
        member = _get_member(session, member_id)
        name, photo_url = member.name, member.photo_url
        session.delete(member)
    logger.info("Member %r (id=%d) deleted", name, member_id)
    return FlowResult.ok(f"{name} has been deleted", member_id=member_id, photo_url=photo_url)


def delete_member(engine: Engine, *, member_id: int) -> FlowResult:
    """Delete a member with their attendance, history and poll mappings.

    ``data["photo_url"]`` is returned so the caller can remove the stored photo.
    """
    return run_flow("delete_member", _delete_member, engine, member_id)


def _set_member_status(engine: Engine, member_id: int, status: MemberStatus | str) -> FlowResult:
    status = MemberStatus(status)
    with ledger_transaction(engine) as session:
        member = _get_member(session, member_id)
        if member.status == status.value:
            return FlowResult.ok(f"{member.name} is already {status.value}", member=_member_dict(member))

        reason = "Marked inactive" if status is MemberStatus.INACTIVE else "Marked active"
        reconcile(
            session,
            [Mutation(member_id=member.id, reason=reason, status_override=status.value)],
            include_ids=(member.id,),
            flow="set_member_status",
        )
        data = _member_dict(member)

    return FlowResult.ok(f"{data['name']} is now {status.value}", member=data)


def set_member_status(
    engine: Engine, *, member_id: int, status: MemberStatus | str
) -> FlowResult:
    """Activate or deactivate a member; ranks are refreshed around the change."""
    return run_flow(
        "set_member_status", _set_member_status, engine, member_id, status
    )


# ---------------------------------------------------------------------------
# Draft editing & deletion
# ---------------------------------------------------------------------------
def _save_draft_attendance(
    engine: Engine,
    event_id: int,
    entries: Sequence[tuple[int, str, str | None]],
) -> FlowResult:
    with ledger_transaction(engine) as session:
        event = _get_event(session, event_id)
        if not event.is_draft:
            raise InvalidStateError(f"Event {event_id} has been submitted; attendance is locked")

        known = set(session.scalars(select(Member.id)).all())
        rows = {
            member_id: (AttendanceStatus(status).value, notes)
            for member_id, status, notes in entries
            if member_id in known
        }

        event.attendance.clear()
        session.flush()
        for member_id, (status, notes) in rows.items():
            event.attendance.append(AttendanceRecord(
                member_id=member_id,
                status=status,
                points_change=0,
                notes=notes if status in _EXCUSED else None,
            ))
        session.flush()

    return FlowResult.ok("Draft attendance saved", event_id=event_id, records=len(rows))


def save_draft_attendance(
    engine: Engine,
    *,
    event_id: int,
    entries: Sequence[tuple[int, str, str | None]],
) -> FlowResult:
    """Replace a draft's attendance rows (``(member_id, status, notes)`` triples)."""
    return run_flow(
        "save_draft_attendance", _save_draft_attendance, engine, event_id, entries
    )


def _delete_event(engine: Engine, event_id: int) -> FlowResult:
    with ledger_transaction(engine) as session:
        event = _get_event(session, event_id)
        if not event.is_draft and not event.is_reverted:
            raise InvalidStateError(
                "Cannot delete submitted events. Only drafts can be deleted."
            )
        # History stays in the ledger; it just loses its event link
        session.execute(
            update(PointHistory)
            .where(PointHistory.event_id == event_id)
            .values(event_id=None)
        )
        session.delete(event)
    return FlowResult.ok("Draft event deleted successfully", event_id=event_id)


def delete_event(engine: Engine, *, event_id: int) -> FlowResult:
    """Delete a draft (or reverted) event and its attendance rows."""
    return run_flow("delete_event", _delete_event, engine, event_id)
