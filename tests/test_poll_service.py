"""
tests/test_poll_service.py — Poll Import Integration Tests
===========================================================
Draft creation from poll rows, re-sync, the name-mapping cache and
new-event detection.  Uses the shared in-memory SQLite fixtures.
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from clubpoints.database.models import (
    AttendanceRecord,
    Event,
    Member,
    PointHistory,
    PollMemberMapping,
)
from clubpoints.services import ledger_service, poll_service
from clubpoints.services.errors import INVALID_STATE, NOT_FOUND

POLL_ID = "general_meeting_2025_11_13"
RESP = "general_meeting_Response_2025_11_13"
NOTES = "general_meeting_Notes_2025_11_13"
QUESTION = "general_meeting_Question_2025_11_13"
# A row that names nobody on the roster
NOBODY = ("Nobody", None, None)


def _rows(*answers: tuple[str, str | None, str | None]) -> list[dict]:
    rows = []
    for person, response, notes in answers:
        row = {"Person": person, QUESTION: "Are you coming?"}
        if response is not None:
            row[RESP] = response
        if notes is not None:
            row[NOTES] = notes
        rows.append(row)
    return rows


def _records(engine, event_id: int) -> dict[int, AttendanceRecord]:
    with Session(engine) as session:
        rows = session.scalars(
            select(AttendanceRecord).where(AttendanceRecord.event_id == event_id)
        ).all()
        return {r.member_id: r for r in rows}


@pytest.fixture
def engine(db_engine):
    return db_engine


class TestCreateDraft:
    def test_draft_statuses(self, engine, make_members):
        quinn, kit, sam = make_members(("Quinn Kiefer", 100), ("Kit He", 100), ("Sam Lee", 100))
        rows = _rows(("quinn", "Yes", None), ("Kit H", "no", None), ("Someone Else", "no", "x"))

        result = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows)

        assert result.success
        assert result.data["members"] == 3
        assert result.data["matched"] == 2
        records = _records(engine, result.data["event_id"])
        assert records[quinn].status == "absent"  # "yes" is not present yet
        assert records[kit].status == "excused_absent"
        assert records[kit].notes == "No reason provided"
        assert records[sam].status == "absent"
        assert all(r.points_change == 0 for r in records.values())

    def test_draft_event_fields(self, engine, make_members):
        make_members(("Quinn", 100))
        result = poll_service.create_draft_from_poll(
            engine, poll_event_id=POLL_ID, rows=_rows(("Quinn", "yes", None))
        )
        with Session(engine) as session:
            event = session.get(Event, result.data["event_id"])
            assert event.name == "General Meeting"
            assert event.event_type == "Active Meeting"
            assert event.is_draft is True
            assert event.poll_event_id == POLL_ID
            assert event.date.date() == date(2025, 11, 13)

    def test_no_points_move(self, engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        poll_service.create_draft_from_poll(
            engine, poll_event_id=POLL_ID, rows=_rows(("Quinn", "no", "Sick"))
        )
        with Session(engine) as session:
            assert session.get(Member, quinn).points == 100
            assert session.scalars(select(PointHistory)).all() == []

    def test_inactive_members_excluded(self, engine, make_members):
        quinn, kit = make_members(("Quinn", 100), ("Kit", 100))
        ledger_service.set_member_status(engine, member_id=kit, status="inactive")
        result = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=_rows(NOBODY))
        assert set(_records(engine, result.data["event_id"])) == {quinn}

    def test_second_import_conflicts(self, engine, make_members):
        make_members(("Quinn", 100))
        rows = _rows(("Quinn", "yes", None))
        poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows)
        again = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows)
        assert again.error_kind == INVALID_STATE

    def test_unknown_poll(self, engine):
        result = poll_service.create_draft_from_poll(
            engine, poll_event_id="nope_2025_01_01", rows=_rows(("Quinn", "yes", None))
        )
        assert result.error_kind == NOT_FOUND


class TestSyncResponses:
    def test_yes_becomes_present(self, engine, make_members):
        quinn, kit = make_members(("Quinn", 100), ("Kit", 100))
        created = poll_service.create_draft_from_poll(
            engine, poll_event_id=POLL_ID, rows=_rows(("Quinn", "yes", None))
        )
        event_id = created.data["event_id"]

        rows = _rows(("Quinn", "yes", None), ("Kit", "no", "Exam"))
        result = poll_service.sync_responses(engine, event_id=event_id, rows=rows)

        assert result.success
        assert result.data["updated"] == 2
        records = _records(engine, event_id)
        assert records[quinn].status == "present"
        assert (records[kit].status, records[kit].notes) == ("excused_absent", "Exam")

    def test_sync_is_idempotent(self, engine, make_members):
        make_members(("Quinn", 100))
        rows = _rows(("Quinn", "yes", None))
        created = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows)
        event_id = created.data["event_id"]

        poll_service.sync_responses(engine, event_id=event_id, rows=rows)
        again = poll_service.sync_responses(engine, event_id=event_id, rows=rows)
        assert again.data["updated"] == 0

    def test_new_member_gets_a_row(self, engine, make_members):
        make_members(("Quinn", 100))
        created = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=_rows(NOBODY))
        (kit,) = make_members(("Kit", 100))
        poll_service.sync_responses(
            engine, event_id=created.data["event_id"], rows=_rows(("Kit", "yes", None))
        )
        assert _records(engine, created.data["event_id"])[kit].status == "present"

    def test_submitted_event_rejected(self, engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        created = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=_rows(NOBODY))
        event_id = created.data["event_id"]
        ledger_service.submit_event(
            engine, name="GM", category="active_meeting", attendance={quinn: "present"},
            event_id=event_id,
        )
        result = poll_service.sync_responses(engine, event_id=event_id, rows=_rows(NOBODY))
        assert result.error_kind == INVALID_STATE

    def test_unlinked_draft_rejected(self, engine):
        with Session(engine) as session:
            event = Event(name="Manual", event_type="Active Meeting", is_draft=True)
            session.add(event)
            session.commit()
            event_id = event.id
        assert poll_service.sync_responses(engine, event_id=event_id, rows=[]).error_kind == INVALID_STATE

    def test_unknown_event(self, engine):
        assert poll_service.sync_responses(engine, event_id=42, rows=[]).error_kind == NOT_FOUND


class TestMappingCache:
    def test_fuzzy_matches_are_remembered(self, engine, make_members):
        (quinn,) = make_members(("Quinn Kiefer", 100))
        poll_service.create_draft_from_poll(
            engine, poll_event_id=POLL_ID, rows=_rows(("quinn", "no", None))
        )
        with Session(engine) as session:
            mapping = session.scalars(select(PollMemberMapping)).one()
            assert (mapping.person_name, mapping.member_id) == ("quinn", quinn)

    def test_stored_mapping_wins_over_fuzzy_match(self, engine, make_members):
        sam_a, sam_b = make_members(("Sam Adams", 100), ("Sam Brown", 100))
        with Session(engine) as session:
            session.add(PollMemberMapping(person_name="Sam", member_id=sam_b))
            session.commit()

        result = poll_service.create_draft_from_poll(
            engine, poll_event_id=POLL_ID, rows=_rows(("Sam", "no", "Away"))
        )
        records = _records(engine, result.data["event_id"])
        assert records[sam_b].status == "excused_absent"
        # "Sam" is claimed by Sam Brown, so Sam Adams gets no response
        assert records[sam_a].status == "absent"


class TestDetectNewEvents:
    def test_linked_polls_are_hidden(self, engine, make_members):
        make_members(("Quinn", 100))
        rows = _rows(("Quinn", "yes", None)) + [{"Person": "Quinn", "POLL_Q_9": "Social?"}]
        assert {e.event_id for e in poll_service.detect_new_events(engine, rows)} == {
            POLL_ID, "POLL_9",
        }
        poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=rows)
        assert [e.event_id for e in poll_service.detect_new_events(engine, rows)] == ["POLL_9"]


class TestCheckSyncable:
    def test_linked_draft_is_syncable(self, engine, make_members):
        make_members(("Quinn", 100))
        created = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=_rows(NOBODY))
        result = poll_service.check_syncable(engine, event_id=created.data["event_id"])
        assert result.success
        assert result.data["poll_event_id"] == POLL_ID

    def test_submitted_draft_is_not_syncable(self, engine, make_members):
        (quinn,) = make_members(("Quinn", 100))
        created = poll_service.create_draft_from_poll(engine, poll_event_id=POLL_ID, rows=_rows(NOBODY))
        event_id = created.data["event_id"]
        ledger_service.submit_event(
            engine, name="GM", category="active_meeting", attendance={quinn: "present"},
            event_id=event_id,
        )
        assert poll_service.check_syncable(engine, event_id=event_id).error_kind == INVALID_STATE

    def test_unknown_event(self, engine):
        assert poll_service.check_syncable(engine, event_id=9).error_kind == NOT_FOUND
