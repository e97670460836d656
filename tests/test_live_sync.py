"""
tests/test_live_sync.py — Periodic Poll Re-sync Tests
======================================================

Runs the asyncio loop with ``asyncio.run`` and a tiny interval.
"""

from __future__ import annotations

import asyncio

from sqlalchemy import select
from sqlalchemy.orm import Session

from clubpoints.database.models import AttendanceRecord
from clubpoints.services import ledger_service, poll_service
from clubpoints.services.airtable_client import PollSourceError
from clubpoints.services.live_sync import LiveSyncManager

POLL_ID = "general_meeting_2025_11_13"
QUESTION = "general_meeting_Question_2025_11_13"
RESP = "general_meeting_Response_2025_11_13"


def _row(person: str, response: str | None = None) -> dict:
    row = {"Person": person, QUESTION: "Coming?"}
    if response:
        row[RESP] = response
    return row


def _status(engine, event_id: int, member_id: int) -> str:
    with Session(engine) as session:
        return session.scalar(
            select(AttendanceRecord.status).where(
                AttendanceRecord.event_id == event_id,
                AttendanceRecord.member_id == member_id,
            )
        )


def _draft(engine, rows) -> int:
    return poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows).data["event_id"]


class TestLiveSyncManager:
    def test_loop_applies_new_answers(self, db_engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        event_id = _draft(db_engine, [_row("Quinn")])
        calls = {"n": 0}

        def fetch():
            calls["n"] += 1
            return [_row("Quinn", "yes")]

        async def scenario():
            manager = LiveSyncManager(db_engine, fetch, interval=0.01)
            assert manager.start(event_id) is True
            assert manager.start(event_id) is False
            # A second fetch means the first tick's sync has finished
            for _ in range(200):
                await asyncio.sleep(0.01)
                if calls["n"] >= 2:
                    break
            assert manager.is_running(event_id)
            assert manager.stop(event_id) is True
            assert manager.stop(event_id) is False
            await manager.stop_all()

        asyncio.run(scenario())
        assert _status(db_engine, event_id, quinn) == "present"

    def test_loop_ends_when_event_is_submitted(self, db_engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        rows = [_row("Quinn")]
        event_id = _draft(db_engine, rows)
        ledger_service.submit_event(
            db_engine, name="GM", category="active_meeting",
            attendance={quinn: "present"}, event_id=event_id,
        )

        async def scenario():
            manager = LiveSyncManager(db_engine, lambda: rows, interval=0.01)
            manager.start(event_id)
            for _ in range(100):
                await asyncio.sleep(0.01)
                if not manager.is_running(event_id):
                    break
            return manager.running()

        assert asyncio.run(scenario()) == []

    def test_source_errors_do_not_stop_the_loop(self, db_engine, make_members):
        make_members(("Quinn", 100))
        event_id = _draft(db_engine, [_row("Quinn")])
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            raise PollSourceError("timeout")

        async def scenario():
            manager = LiveSyncManager(db_engine, flaky, interval=0.01)
            manager.start(event_id)
            for _ in range(100):
                await asyncio.sleep(0.01)
                if calls["n"] >= 3:
                    break
            running = manager.is_running(event_id)
            await manager.stop_all()
            return running

        assert asyncio.run(scenario()) is True
        assert calls["n"] >= 3

    def test_sync_once(self, db_engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        event_id = _draft(db_engine, [_row("Quinn")])
        manager = LiveSyncManager(db_engine, lambda: [_row("Quinn", "yes")])

        result = asyncio.run(manager.sync_once(event_id))

        assert result.success
        assert _status(db_engine, event_id, quinn) == "present"
