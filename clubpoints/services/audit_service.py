"""
clubpoints.services.audit_service — Ledger Consistency Check
=============================================================

Verifies every member's balance against the append-only ledger:

    1. ``starting_points + SUM(point_history.points_change) == members.points``
    2. Walking the history in insertion order, each row's ``new_total``
       equals the running balance.

Report only: drift is logged and returned, never corrected, because the
ledger rather than the balance is the record an admin has to inspect.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, datetime

from sqlalchemy import Engine, select

from clubpoints.constants import STARTING_POINTS
from clubpoints.database.engine import get_session
from clubpoints.database.models import Member, PointHistory

logger = logging.getLogger(__name__)


def verify_ledger(engine: Engine, starting_points: int = STARTING_POINTS) -> dict:
    """Check every member's ledger.

    Returns ``{"checked": N, "drifted": M, "problems": [...], "checked_at": iso}``.
    """
    problems: list[dict] = []

    with get_session(engine) as session:
        members = session.scalars(select(Member).order_by(Member.id)).all()
        history = session.scalars(
            select(PointHistory).order_by(PointHistory.member_id, PointHistory.id)
        ).all()

        by_member: dict[int, list[PointHistory]] = defaultdict(list)
        for row in history:
            by_member[row.member_id].append(row)

        for member in members:
            running = starting_points
            chain_break: int | None = None
            for row in by_member.get(member.id, []):
                running += row.points_change
                if chain_break is None and row.new_total != running:
                    chain_break = row.id

            if running != member.points or chain_break is not None:
                problems.append({
                    "member_id": member.id,
                    "name": member.name,
                    "points": member.points,
                    "ledger_total": running,
                    "diff": member.points - running,
                    "first_bad_history_id": chain_break,
                })

    if problems:
        logger.warning(
            "Ledger audit: %d/%d members drifted: %s",
            len(problems), len(members), problems,
        )
    else:
        logger.info("Ledger audit: %d members consistent", len(members))

    return {
        "checked": len(members),
        "drifted": len(problems),
        "problems": problems,
        "checked_at": datetime.now(UTC).isoformat(),
    }
