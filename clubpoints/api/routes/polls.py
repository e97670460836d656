"""
clubpoints.api.routes.polls — Poll import, draft sync & live sync
==================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import Engine

from clubpoints.api.deps import (
    flow_response,
    get_config,
    get_engine,
    get_live_sync,
    get_poll_client,
)
from clubpoints.config import ClubConfig
from clubpoints.database.engine import run_db
from clubpoints.services import poll_service
from clubpoints.services.airtable_client import AirtableClient, PollSourceError
from clubpoints.services.live_sync import LiveSyncManager

router = APIRouter(prefix="/polls", tags=["polls"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class DraftFromPoll(BaseModel):
    poll_event_id: str


def _fetch_rows(poll_client: AirtableClient) -> list[dict]:
    try:
        return poll_client.fetch_all_rows()
    except PollSourceError as exc:
        logger.warning("Poll fetch failed: %s", exc)
        raise HTTPException(502, str(exc)) from exc


# ---------------------------------------------------------------------------
# Import & sync
# ---------------------------------------------------------------------------
@router.get("/events")
def detect_events(
    engine: Engine = Depends(get_engine),
    poll_client: AirtableClient = Depends(get_poll_client),
):
    """Polls in the source that have no draft yet."""
    rows = _fetch_rows(poll_client)
    events = poll_service.detect_new_events(engine, rows)
    return {"events": [e.to_dict() for e in events]}


@router.post("/drafts", status_code=201)
def create_draft(
    body: DraftFromPoll,
    engine: Engine = Depends(get_engine),
    cfg: ClubConfig = Depends(get_config),
    poll_client: AirtableClient = Depends(get_poll_client),
):
    """Create a draft meeting pre-filled from a poll's answers."""
    rows = _fetch_rows(poll_client)
    return flow_response(poll_service.create_draft_from_poll(
        engine,
        poll_event_id=body.poll_event_id,
        rows=rows,
        person_field=cfg.airtable_person_field,
    ))


@router.post("/drafts/{event_id}/sync")
def sync_draft(
    event_id: int,
    engine: Engine = Depends(get_engine),
    cfg: ClubConfig = Depends(get_config),
    poll_client: AirtableClient = Depends(get_poll_client),
):
    """Re-read the poll into a draft's attendance rows."""
    rows = _fetch_rows(poll_client)
    return flow_response(poll_service.sync_responses(
        engine,
        event_id=event_id,
        rows=rows,
        person_field=cfg.airtable_person_field,
    ))


# ---------------------------------------------------------------------------
# Live sync
# ---------------------------------------------------------------------------
@router.get("/live-sync")
def live_sync_status(manager: LiveSyncManager = Depends(get_live_sync)):
    return {"running": manager.running(), "interval_seconds": manager.interval}


@router.post("/drafts/{event_id}/live-sync")
async def start_live_sync(
    event_id: int,
    engine: Engine = Depends(get_engine),
    manager: LiveSyncManager = Depends(get_live_sync),
):
    """Keep a draft in step with its poll until stopped or submitted."""
    flow_response(await run_db(poll_service.check_syncable, engine, event_id=event_id))
    started = manager.start(event_id)
    return {"event_id": event_id, "running": True, "started": started}


@router.delete("/drafts/{event_id}/live-sync")
async def stop_live_sync(event_id: int, manager: LiveSyncManager = Depends(get_live_sync)):
    if not manager.stop(event_id):
        raise HTTPException(404, "Live sync is not running for this event")
    return {"event_id": event_id, "running": False}
