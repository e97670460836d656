"""
clubpoints.engine.ranking — Leaderboard Rank Snapshots
=======================================================

Pure functions, no DB I/O.  A *snapshot* maps ``member_id → rank`` (1-based)
for the active members, ordered by ``(points desc, name asc)``.  Names are
compared by plain ``str`` ordering (code points), never by locale, so the
same input always yields the same snapshot.  Member ids break any remaining
tie (two members with the same name and balance).

Rank deltas are ``old_rank - new_rank``: positive means the member moved up.
A member missing from the old snapshot (newly added or reactivated) is
treated as if it held its new rank, so its delta is 0.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

__all__ = [
    "RankedMember",
    "compute_rank_deltas",
    "rank_order",
    "snapshot_ranks",
]


class RankedMember(Protocol):
    """Anything with the attributes the ranking needs (ORM rows included)."""

    id: int
    name: str
    points: int


@dataclass(frozen=True, slots=True)
class _Row:
    id: int
    name: str
    points: int


def _sort_key(member: RankedMember) -> tuple[int, str, int]:
    return (-member.points, member.name, member.id)


def rank_order(members: Iterable[RankedMember]) -> list[RankedMember]:
    """Members sorted into leaderboard order."""
    return sorted(members, key=_sort_key)


def snapshot_ranks(members: Iterable[RankedMember]) -> dict[int, int]:
    """Return ``{member_id: rank}`` for *members* (callers pass active ones).

    Values are copied before sorting so later mutation of ORM rows cannot
    leak into a snapshot that has already been taken.
    """
    rows = [_Row(m.id, m.name, m.points) for m in members]
    return {row.id: rank for rank, row in enumerate(rank_order(rows), start=1)}


def compute_rank_deltas(
    old_snapshot: Mapping[int, int], new_snapshot: Mapping[int, int]
) -> dict[int, int]:
    """Return ``{member_id: old_rank - new_rank}`` for every id in *new_snapshot*."""
    return {
        member_id: old_snapshot.get(member_id, new_rank) - new_rank
        for member_id, new_rank in new_snapshot.items()
    }
