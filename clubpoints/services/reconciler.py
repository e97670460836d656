"""
clubpoints.services.reconciler — Points & Rank Reconciliation
==============================================================

The one place that moves member balances.  Every ledger flow (manual
adjustment, attendance, event submission, revert, rank recalculation,
status change) builds a list of :class:`Mutation` objects and hands it to
:func:`reconcile` inside a :func:`ledger_transaction`:

    1. Load the working set (active members, row-locked on PostgreSQL)
    2. Snapshot the old ranks
    3. Apply each mutation in memory; append history / attendance rows
    4. Flush the new balances
    5. Snapshot the new ranks over the still-active members
    6. Persist ``rank_change`` and ``last_rank`` for every active member

A mutation naming a member outside the working set is skipped, not fatal.
Any database error aborts the whole transaction so balances, ranks and the
ledger roll back together.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import Engine, or_, select
from sqlalchemy.orm import Session

from clubpoints.database.engine import get_session
from clubpoints.database.models import (
    AttendanceRecord,
    Member,
    MemberStatus,
    PointHistory,
)
from clubpoints.engine.ranking import compute_rank_deltas, snapshot_ranks

logger = logging.getLogger(__name__)

# Serializes reconciliations and draft lifecycle writes within this
# process.  Row locks taken by ``with_for_update`` cover concurrent API
# workers on PostgreSQL.
_ledger_lock = threading.RLock()


class OldRanks(enum.StrEnum):
    """Where the "before" snapshot comes from."""
    COMPUTED = "computed"  # rank the loaded balances right before mutating
    STORED = "stored"      # ranks persisted by the previous reconciliation


@dataclass(frozen=True, slots=True)
class Mutation:
    """One requested change to one member."""

    member_id: int
    points_delta: int = 0
    reason: str = ""
    status_override: str | None = None
    # When set (and an event is given), an AttendanceRecord is written
    attendance_status: str | None = None
    notes: str | None = None


@dataclass
class ReconcileResult:
    """What a reconciliation actually did."""

    applied: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    new_totals: dict[int, int] = field(default_factory=dict)
    rank_changes: dict[int, int] = field(default_factory=dict)
    history_written: int = 0
    attendance_written: int = 0


@contextmanager
def ledger_transaction(engine: Engine) -> Iterator[Session]:
    """Hold the ledger lock for one session that commits or rolls back as a unit."""
    with _ledger_lock:
        with get_session(engine) as session:
            yield session


def load_working_set(
    session: Session, include_ids: Iterable[int] = ()
) -> list[Member]:
    """Active members (plus any explicitly included ids), locked for update."""
    extra = sorted(set(include_ids))
    condition = Member.status == MemberStatus.ACTIVE.value
    if extra:
        condition = or_(condition, Member.id.in_(extra))
    return list(session.scalars(
        select(Member)
        .where(condition)
        .order_by(Member.points.desc(), Member.name, Member.id)
        .with_for_update()
    ).all())


def _needs_history(mutation: Mutation) -> bool:
    return (
        mutation.points_delta != 0
        or mutation.status_override == MemberStatus.INACTIVE.value
    )


def reconcile(
    session: Session,
    mutations: Sequence[Mutation],
    *,
    event_id: int | None = None,
    include_ids: Iterable[int] = (),
    old_ranks: OldRanks = OldRanks.COMPUTED,
    update_ranks: bool = True,
    flow: str = "reconcile",
) -> ReconcileResult:
    """Apply *mutations* and refresh ranks inside the caller's transaction.

    Parameters
    ----------
    session : an open session from :func:`ledger_transaction`
    mutations : changes to apply, in order
    event_id : stamped on history and attendance rows (``None`` = manual)
    include_ids : members to load even if inactive (e.g. a manual target)
    old_ranks : source of the "before" snapshot
    update_ranks : ``False`` leaves ``rank_change``/``last_rank`` untouched
    flow : label used in log lines
    """
    members = load_working_set(session, include_ids)
    by_id = {m.id: m for m in members}

    if old_ranks is OldRanks.STORED:
        old_snapshot = {
            m.id: m.last_rank for m in members
            if m.is_active and m.last_rank is not None
        }
    else:
        old_snapshot = snapshot_ranks(m for m in members if m.is_active)

    result = ReconcileResult()

    for mutation in mutations:
        member = by_id.get(mutation.member_id)
        if member is None:
            logger.debug("%s: member %s not in working set, skipped", flow, mutation.member_id)
            result.skipped.append(mutation.member_id)
            continue

        member.points += mutation.points_delta
        if mutation.status_override is not None:
            member.status = mutation.status_override

        if _needs_history(mutation):
            session.add(PointHistory(
                member_id=member.id,
                event_id=event_id,
                points_change=mutation.points_delta,
                reason=mutation.reason,
                new_total=member.points,
            ))
            result.history_written += 1

        if mutation.attendance_status is not None and event_id is not None:
            session.add(AttendanceRecord(
                event_id=event_id,
                member_id=member.id,
                status=mutation.attendance_status,
                points_change=mutation.points_delta,
                notes=mutation.notes,
            ))
            result.attendance_written += 1

        result.applied.append(member.id)
        result.new_totals[member.id] = member.points

    session.flush()

    if update_ranks:
        active = [m for m in members if m.is_active]
        new_snapshot = snapshot_ranks(active)
        deltas = compute_rank_deltas(old_snapshot, new_snapshot)
        for m in members:
            if m.is_active:
                m.rank_change = deltas.get(m.id, 0)
                m.last_rank = new_snapshot[m.id]
            else:
                m.last_rank = None
        result.rank_changes = {mid: deltas.get(mid, 0) for mid in new_snapshot}
        session.flush()

    logger.info(
        "%s: %d applied, %d skipped, %d history rows, ranks %s",
        flow,
        len(result.applied),
        len(result.skipped),
        result.history_written,
        "refreshed" if update_ranks else "deferred",
    )
    return result
