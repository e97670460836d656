"""
tests/test_ranking.py — Unit Tests for Rank Snapshots
======================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from clubpoints.engine.ranking import compute_rank_deltas, rank_order, snapshot_ranks


@dataclass
class _M:
    id: int
    name: str
    points: int


class TestSnapshot:
    def test_orders_by_points_descending(self):
        members = [_M(1, "Cara", 90), _M(2, "Dev", 120), _M(3, "Eli", 100)]
        assert snapshot_ranks(members) == {2: 1, 3: 2, 1: 3}

    def test_tie_broken_by_name(self):
        members = [_M(1, "Bob", 100), _M(2, "Alice", 100)]
        assert snapshot_ranks(members) == {2: 1, 1: 2}

    def test_tie_on_name_broken_by_id(self):
        members = [_M(7, "Sam", 100), _M(3, "Sam", 100)]
        assert snapshot_ranks(members) == {3: 1, 7: 2}

    def test_deterministic_regardless_of_input_order(self):
        members = [_M(i, f"M{i % 4}", 100 - (i % 3)) for i in range(1, 13)]
        assert snapshot_ranks(members) == snapshot_ranks(list(reversed(members)))

    def test_snapshot_is_not_affected_by_later_mutation(self):
        members = [_M(1, "Alice", 100), _M(2, "Bob", 90)]
        snap = snapshot_ranks(members)
        members[1].points = 500
        assert snap == {1: 1, 2: 2}

    def test_empty(self):
        assert snapshot_ranks([]) == {}

    def test_rank_order_returns_members(self):
        a, b = _M(1, "Alice", 10), _M(2, "Bob", 20)
        assert rank_order([a, b]) == [b, a]


class TestRankDeltas:
    def test_moving_up_is_positive(self):
        assert compute_rank_deltas({1: 5}, {1: 2}) == {1: 3}

    def test_moving_down_is_negative(self):
        assert compute_rank_deltas({1: 2}, {1: 5}) == {1: -3}

    def test_new_member_is_neutral(self):
        assert compute_rank_deltas({1: 1}, {1: 1, 2: 2}) == {1: 0, 2: 0}

    def test_members_dropped_from_new_snapshot_are_omitted(self):
        assert compute_rank_deltas({1: 1, 2: 2}, {2: 1}) == {2: 1}
