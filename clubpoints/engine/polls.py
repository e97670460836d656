"""
clubpoints.engine.polls — Attendance Poll Parsing
==================================================

Pure helpers for the poll import: no HTTP, no DB.

A poll source row is a plain ``{column: value}`` dict (one per person).
Two column conventions describe an event:

* **Named question** — ``{event_name}_Question_{YYYY_MM_DD}`` plus the
  matching ``_Response_`` and ``_Notes_`` columns, e.g.
  ``meeting_is_tonight_Question_2025_11_13``.
* **Compact poll** — ``POLL_Q_{id}`` plus ``POLL_R_{id}`` / ``POLL_N_{id}``.

Person names are matched to members with :func:`names_match`:
case-insensitive containment in either direction, else first-token
equality.  No edit-distance matching; stored mappings depend on this rule.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from clubpoints.constants import NO_REASON_PROVIDED
from clubpoints.database.models import AttendanceStatus

__all__ = [
    "PollEvent",
    "PollResponse",
    "detect_events",
    "draft_status",
    "extract_event_date",
    "find_response",
    "names_match",
    "parse_event_name",
    "responses_for_event",
    "sync_status",
]

_QUESTION_RE = re.compile(r"^(?P<slug>.+)_Question_(?P<date>\d{4}_\d{2}_\d{2})$")
_POLL_RE = re.compile(r"^POLL_Q_(?P<poll_id>.+)$")
_DATE_SUFFIX_RE = re.compile(r"_(\d{4})_(\d{2})_(\d{2})$")


@dataclass(frozen=True, slots=True)
class PollEvent:
    """One event detected in the poll source columns."""

    event_id: str
    event_name: str
    date: date
    question_column: str
    response_column: str
    notes_column: str

    def to_dict(self) -> dict[str, str]:
        return {
            "event_id": self.event_id,
            "event_name": self.event_name,
            "date": self.date.isoformat(),
            "question_column": self.question_column,
            "response_column": self.response_column,
            "notes_column": self.notes_column,
        }


@dataclass(frozen=True, slots=True)
class PollResponse:
    """One person's answer to one poll."""

    person: str
    response: str | None
    notes: str | None

    @property
    def normalized(self) -> str:
        return (self.response or "").strip().lower()


# ---------------------------------------------------------------------------
# Column parsing
# ---------------------------------------------------------------------------
def parse_event_name(event_id: str) -> str:
    """``meeting_is_tonight_at_8pm_2025_11_13`` → ``Meeting Is Tonight At 8pm``."""
    slug = _DATE_SUFFIX_RE.sub("", event_id)
    return " ".join(word[:1].upper() + word[1:] for word in slug.split("_"))


def extract_event_date(event_id: str, today: date | None = None) -> date:
    """Date encoded in the id suffix, else *today*."""
    match = _DATE_SUFFIX_RE.search(event_id)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return date(year, month, day)
    return today or date.today()


def _columns(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    # Airtable omits empty cells, so one row may not carry every column.
    seen: dict[str, None] = {}
    for row in rows:
        for col in row:
            seen.setdefault(col, None)
    return list(seen)


def detect_events(
    rows: Iterable[Mapping[str, Any]], today: date | None = None
) -> list[PollEvent]:
    """Scan column names for both conventions, deduplicated by event id."""
    today = today or date.today()
    events: dict[str, PollEvent] = {}

    for col in _columns(rows):
        question = _QUESTION_RE.match(col)
        if question:
            event_id = f"{question['slug']}_{question['date']}"
            if event_id not in events:
                events[event_id] = PollEvent(
                    event_id=event_id,
                    event_name=parse_event_name(question["slug"]),
                    date=extract_event_date(event_id, today),
                    question_column=col,
                    response_column=col.replace("_Question_", "_Response_"),
                    notes_column=col.replace("_Question_", "_Notes_"),
                )
            continue

        poll = _POLL_RE.match(col)
        if poll:
            poll_id = poll["poll_id"]
            event_id = f"POLL_{poll_id}"
            if event_id not in events:
                events[event_id] = PollEvent(
                    event_id=event_id,
                    event_name=f"Poll {poll_id}",
                    date=today,
                    question_column=col,
                    response_column=f"POLL_R_{poll_id}",
                    notes_column=f"POLL_N_{poll_id}",
                )

    return list(events.values())


def responses_for_event(
    rows: Iterable[Mapping[str, Any]],
    event: PollEvent,
    person_field: str = "Person",
) -> list[PollResponse]:
    """One :class:`PollResponse` per row that names a person."""
    responses: list[PollResponse] = []
    for row in rows:
        person = row.get(person_field)
        if not person:
            continue
        responses.append(PollResponse(
            person=str(person),
            response=row.get(event.response_column) or None,
            notes=row.get(event.notes_column) or None,
        ))
    return responses


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------
def names_match(person: str, member_name: str) -> bool:
    """Fuzzy join between a poll person name and a member name.

    ``"quinn"`` matches ``"Quinn Kiefer"``; ``"Kit H"`` matches ``"Kit He"``
    by first token.  Blank names never match.
    """
    p = person.strip().lower()
    m = member_name.strip().lower()
    if not p or not m:
        return False
    if p in m or m in p:
        return True
    return p.split()[0] == m.split()[0]


def find_response(
    member_name: str, responses: Iterable[PollResponse]
) -> PollResponse | None:
    """First response whose person matches *member_name*."""
    for resp in responses:
        if names_match(resp.person, member_name):
            return resp
    return None


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------
def draft_status(response: PollResponse | None) -> tuple[AttendanceStatus, str | None]:
    """Initial draft status: only an explicit "no" pre-fills an excused absence.

    "yes" and silence both stay ``absent``; members are marked present when
    they actually show up.
    """
    if response is not None and response.normalized == "no":
        return AttendanceStatus.EXCUSED_ABSENT, response.notes or NO_REASON_PROVIDED
    return AttendanceStatus.ABSENT, None


def sync_status(response: PollResponse | None) -> tuple[AttendanceStatus, str | None]:
    """Re-sync status: like :func:`draft_status`, but "yes" means present."""
    if response is not None and response.normalized == "yes":
        return AttendanceStatus.PRESENT, None
    return draft_status(response)
