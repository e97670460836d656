"""
clubpoints.api.routes.ledger — Point history & ledger audit
============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from clubpoints.api.deps import get_config, get_engine
from clubpoints.config import ClubConfig
from clubpoints.constants import DEFAULT_HISTORY_LIMIT
from clubpoints.services import audit_service, query_service

router = APIRouter(tags=["ledger"])


@router.get("/point-history")
def point_history(
    member_id: int | None = None,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=1000),
    engine: Engine = Depends(get_engine),
):
    """Newest ledger entries first, optionally for one member."""
    return {"history": query_service.point_history(engine, member_id=member_id, limit=limit)}


@router.get("/ledger/audit")
def audit_ledger(
    engine: Engine = Depends(get_engine),
    cfg: ClubConfig = Depends(get_config),
):
    """Check every balance against its history (report only)."""
    return audit_service.verify_ledger(engine, starting_points=cfg.starting_points)
