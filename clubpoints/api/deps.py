"""
clubpoints.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy import Engine

from clubpoints.config import ClubConfig, load_config
from clubpoints.database.engine import create_db_engine
from clubpoints.services.airtable_client import AirtableClient
from clubpoints.services.errors import INVALID_STATE, NOT_FOUND, PERSISTENCE, FlowResult
from clubpoints.services.live_sync import LiveSyncManager

_FLOW_STATUS = {
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
    INVALID_STATE: status.HTTP_409_CONFLICT,
    PERSISTENCE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_live_sync: LiveSyncManager | None = None


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ClubConfig:
    return load_config()


def get_poll_client(cfg: Annotated[ClubConfig, Depends(get_config)]) -> AirtableClient:
    """Airtable client for the configured poll table; 503 when not configured."""
    try:
        return AirtableClient.from_config(cfg)
    except RuntimeError as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc)) from exc


def get_live_sync(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[ClubConfig, Depends(get_config)],
    poll_client: Annotated[AirtableClient, Depends(get_poll_client)],
) -> LiveSyncManager:
    """Process-wide live-sync manager, created on first use."""
    global _live_sync
    if _live_sync is None:
        _live_sync = LiveSyncManager(
            engine,
            poll_client.fetch_all_rows,
            interval=cfg.live_sync_interval_seconds,
            person_field=cfg.airtable_person_field,
        )
    return _live_sync


async def shutdown_live_sync() -> None:
    global _live_sync
    if _live_sync is not None:
        await _live_sync.stop_all()
        _live_sync = None


def flow_response(result: FlowResult) -> dict:
    """Return a successful flow's payload or raise the matching HTTP error."""
    if not result.success:
        raise HTTPException(
            _FLOW_STATUS.get(result.error_kind, status.HTTP_400_BAD_REQUEST),
            result.message,
        )
    return result.to_dict()
