"""
Club Points — Points Leaderboard for a Student Club
====================================================
Tracks member point balances from meeting attendance, social events and
manual adjustments, keeps an append-only ledger of every change, and ranks
members on a live leaderboard.  Attendance can be pre-filled from an
Airtable poll.

Package layout::

    clubpoints/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Event-type labels, ledger defaults
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # Members, events, attendance, ledger
    ├── engine/
    │   ├── rules.py       # (event type, status) → point delta
    │   ├── ranking.py     # Rank snapshots + deltas
    │   └── polls.py       # Poll column detection + name matching
    ├── services/
    │   ├── reconciler.py      # The single points/rank transaction
    │   ├── ledger_service.py  # Adjust, attendance, submit, revert, recalc
    │   ├── poll_service.py    # Drafts from polls, re-sync
    │   ├── live_sync.py       # Periodic draft re-sync
    │   └── audit_service.py   # Ledger consistency check
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # Members, events, polls, ledger
"""

__version__ = "0.1.0"
