"""
clubpoints.constants — Shared Constants & Helpers
==================================================

Single source of truth for event-type labels, ledger wording and ledger
defaults.  Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from clubpoints.database.models import EventCategory

# ---------------------------------------------------------------------------
# Ledger defaults
# ---------------------------------------------------------------------------
STARTING_POINTS = 100
DEFAULT_LIVE_SYNC_SECONDS = 30
DEFAULT_HISTORY_LIMIT = 100

# ---------------------------------------------------------------------------
# Event type labels (stored in events.event_type)
# ---------------------------------------------------------------------------
ACTIVE_MEETING = "Active Meeting"
EXEC_MEETING = "Exec Meeting"
SOCIAL_EVENT = "Social Event"
CUSTOM_EVENT = "Custom Event"

CATEGORY_EVENT_TYPES: dict[EventCategory, str] = {
    EventCategory.ACTIVE_MEETING: ACTIVE_MEETING,
    EventCategory.EXEC_MEETING: EXEC_MEETING,
    EventCategory.SOCIAL: SOCIAL_EVENT,
    EventCategory.CUSTOM: CUSTOM_EVENT,
}

NO_REASON_PROVIDED = "No reason provided"
MANUAL_ADJUSTMENT_LABEL = "Manual Adjustment"
REVERT_REASON = "Event reverted"


def status_reason_text(status: str) -> str:
    """Ledger wording for a status: ``excused_absent`` → ``excused absent``."""
    return status.replace("_", " ", 1)
