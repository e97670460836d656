"""
clubpoints.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for non-secret settings (club identity, starting
balance, poll source location, live-sync cadence).  Secrets such as
``DATABASE_URL`` and ``AIRTABLE_API_KEY`` come from the environment / ``.env``.

Usage::

    from clubpoints.config import load_config

    cfg = load_config()            # reads ./config.yaml by default
    print(cfg.club_name)           # "SEP Points"
    print(cfg.starting_points)     # 100
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from clubpoints.constants import DEFAULT_LIVE_SYNC_SECONDS, STARTING_POINTS


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ClubConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    club_name: str

    # Dashboard
    dashboard_port: int

    # Ledger
    starting_points: int = STARTING_POINTS

    # Poll import (Airtable)
    airtable_base_id: str | None = None
    airtable_table_name: str | None = None
    airtable_person_field: str = "Person"
    live_sync_interval_seconds: int = DEFAULT_LIVE_SYNC_SECONDS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ClubConfig:
    """Read *path* and return a :class:`ClubConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key (``club_name``, ``dashboard_port``) is missing.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    airtable = raw.get("airtable") or {}

    return ClubConfig(
        club_name=raw["club_name"],
        dashboard_port=int(raw["dashboard_port"]),
        starting_points=int(raw.get("starting_points", STARTING_POINTS)),
        airtable_base_id=airtable.get("base_id") or None,
        airtable_table_name=airtable.get("table_name") or None,
        airtable_person_field=airtable.get("person_field") or "Person",
        live_sync_interval_seconds=int(
            airtable.get("live_sync_interval_seconds", DEFAULT_LIVE_SYNC_SECONDS)
        ),
    )
