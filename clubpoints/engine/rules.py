"""
clubpoints.engine.rules — Attendance Point Rules
=================================================

Pure lookup from ``(event type, attendance status)`` to a point delta.
No DB I/O.

Resolution order for :func:`resolve_delta`:
  custom_rules[status] (if present, even 0) → standard rules for the event
  type → standard meeting rules (unknown event type) → 0 (unknown status).

Social events do not use this table for awards; every selected member gets
the flat ``social_points`` chosen at submission time.
"""

from __future__ import annotations

from collections.abc import Mapping

from clubpoints.constants import (
    ACTIVE_MEETING,
    CATEGORY_EVENT_TYPES,
    CUSTOM_EVENT,
    EXEC_MEETING,
    SOCIAL_EVENT,
)
from clubpoints.database.models import AttendanceStatus, EventCategory

__all__ = [
    "MEETING_RULES",
    "POINT_RULES",
    "event_type_for_category",
    "resolve_delta",
    "rules_for",
]

# ---------------------------------------------------------------------------
# Standard rule sets
# ---------------------------------------------------------------------------
MEETING_RULES: dict[AttendanceStatus, int] = {
    AttendanceStatus.ABSENT: -5,
    AttendanceStatus.EXCUSED_ABSENT: -1,
    AttendanceStatus.LATE: -2,
    AttendanceStatus.EXCUSED_LATE: -1,
    AttendanceStatus.PRESENT: 0,
    AttendanceStatus.INACTIVE: 0,
}

# Social events award points per event, never per status
SOCIAL_RULES: dict[AttendanceStatus, int] = {status: 0 for status in AttendanceStatus}

POINT_RULES: dict[str, dict[AttendanceStatus, int]] = {
    ACTIVE_MEETING: MEETING_RULES,
    EXEC_MEETING: MEETING_RULES,
    SOCIAL_EVENT: SOCIAL_RULES,
}


def rules_for(event_type: str) -> dict[AttendanceStatus, int]:
    """Standard rule set for *event_type*; unknown types use meeting rules."""
    return POINT_RULES.get(event_type, MEETING_RULES)


def resolve_delta(
    event_type: str,
    status: str,
    custom_rules: Mapping[str, int] | None = None,
) -> int:
    """Point delta for one attendance status.

    An explicit entry in *custom_rules* always wins, including ``0``.
    A status with no entry anywhere resolves to ``0`` rather than raising.
    """
    if custom_rules and status in custom_rules and custom_rules[status] is not None:
        return int(custom_rules[status])

    try:
        key = AttendanceStatus(status)
    except ValueError:
        return 0
    return rules_for(event_type).get(key, 0)


def event_type_for_category(
    category: EventCategory | str, custom_event_type: str | None = None
) -> str:
    """Stored ``event_type`` label for a submission category."""
    category = EventCategory(category)
    if category is EventCategory.CUSTOM:
        return (custom_event_type or "").strip() or CUSTOM_EVENT
    return CATEGORY_EVENT_TYPES[category]
