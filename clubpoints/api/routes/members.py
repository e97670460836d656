"""
clubpoints.api.routes.members — Leaderboard, member lifecycle & adjustments
============================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy import Engine

from clubpoints.api.deps import flow_response, get_config, get_engine
from clubpoints.config import ClubConfig
from clubpoints.database.engine import run_db
from clubpoints.database.models import MemberStatus
from clubpoints.services import ledger_service, query_service
from clubpoints.services.photo_store import delete_photo, save_photo

router = APIRouter(prefix="/members", tags=["members"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class StatusUpdate(BaseModel):
    status: MemberStatus


class PointsAdjustment(BaseModel):
    member_id: int
    points_change: int
    reason: str | None = None
    update_ranks: bool = True


# ---------------------------------------------------------------------------
# Leaderboard & lifecycle
# ---------------------------------------------------------------------------
@router.get("")
def list_members(
    include_inactive: bool = True,
    engine: Engine = Depends(get_engine),
):
    """Leaderboard: active members in rank order, then inactive members."""
    return {"members": query_service.leaderboard(engine, include_inactive=include_inactive)}


@router.post("", status_code=201)
async def add_member(
    name: str = Form(...),
    photo: UploadFile | None = File(None),
    engine: Engine = Depends(get_engine),
    cfg: ClubConfig = Depends(get_config),
):
    """Add a member with the configured starting balance and an optional photo."""
    photo_url = None
    if photo is not None and photo.filename:
        content = await photo.read()
        try:
            photo_url = await save_photo(photo.filename, content, photo.content_type)
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc

    result = await run_db(
        ledger_service.add_member,
        engine,
        name=name,
        starting_points=cfg.starting_points,
        photo_url=photo_url,
    )
    if not result.success:
        delete_photo(photo_url)
    return flow_response(result)


@router.delete("/{member_id}")
def delete_member(member_id: int, engine: Engine = Depends(get_engine)):
    """Delete a member, their attendance and history, and their photo."""
    body = flow_response(ledger_service.delete_member(engine, member_id=member_id))
    delete_photo(body["data"].get("photo_url"))
    return body


@router.patch("/{member_id}/status")
def update_status(
    member_id: int,
    body: StatusUpdate,
    engine: Engine = Depends(get_engine),
):
    """Mark a member active or inactive."""
    return flow_response(
        ledger_service.set_member_status(engine, member_id=member_id, status=body.status)
    )


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------
@router.post("/adjust-points")
def adjust_points(body: PointsAdjustment, engine: Engine = Depends(get_engine)):
    """Manually add or deduct points."""
    return flow_response(ledger_service.adjust_points(
        engine,
        member_id=body.member_id,
        points_change=body.points_change,
        reason=body.reason,
        update_ranks=body.update_ranks,
    ))


@router.post("/recalculate-ranks")
def recalculate_ranks(engine: Engine = Depends(get_engine)):
    """Refresh every active member's rank change."""
    return flow_response(ledger_service.recalculate_ranks(engine))
