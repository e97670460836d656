"""
clubpoints.services.live_sync — Periodic Poll Re-sync
======================================================

While an admin has a poll-linked draft open, its attendance can be kept in
step with the poll by re-running :func:`sync_responses` every
``interval`` seconds (30 by default).

One asyncio task per draft.  Each tick fetches rows and syncs on worker
threads via :func:`run_db`, so the event loop never blocks.  A failing tick
is logged and the loop carries on; the loop ends itself once the event is
gone or no longer a draft.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from sqlalchemy import Engine

from clubpoints.constants import DEFAULT_LIVE_SYNC_SECONDS
from clubpoints.database.engine import run_db
from clubpoints.services.airtable_client import PollSourceError
from clubpoints.services.errors import INVALID_STATE, NOT_FOUND, FlowResult
from clubpoints.services.poll_service import sync_responses

logger = logging.getLogger(__name__)

FetchRows = Callable[[], Sequence[Mapping[str, Any]]]

_TERMINAL_KINDS = {NOT_FOUND, INVALID_STATE}


class LiveSyncManager:
    """Starts, tracks and cancels the per-draft sync loops."""

    def __init__(
        self,
        engine: Engine,
        fetch_rows: FetchRows,
        *,
        interval: float = DEFAULT_LIVE_SYNC_SECONDS,
        person_field: str = "Person",
    ) -> None:
        self.engine = engine
        self.fetch_rows = fetch_rows
        self.interval = interval
        self.person_field = person_field
        self._tasks: dict[int, asyncio.Task] = {}

    def is_running(self, event_id: int) -> bool:
        task = self._tasks.get(event_id)
        return task is not None and not task.done()

    def running(self) -> list[int]:
        return sorted(eid for eid in self._tasks if self.is_running(eid))

    def start(self, event_id: int) -> bool:
        """Start syncing *event_id*.  Returns ``False`` if already running.

        Must be called from a coroutine (needs the running loop).
        """
        if self.is_running(event_id):
            return False
        self._tasks[event_id] = asyncio.get_running_loop().create_task(
            self._run(event_id), name=f"live-sync-{event_id}"
        )
        logger.info("Live sync started for event %d (every %ss)", event_id, self.interval)
        return True

    def stop(self, event_id: int) -> bool:
        """Cancel the loop for *event_id*.  Returns ``False`` if none was running."""
        task = self._tasks.pop(event_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Live sync stopped for event %d", event_id)
        return True

    async def stop_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def sync_once(self, event_id: int) -> FlowResult | None:
        """One tick.  Returns ``None`` when the poll source could not be read."""
        try:
            rows = await run_db(self.fetch_rows)
        except PollSourceError as exc:
            logger.warning("Live sync for event %d: %s", event_id, exc)
            return None
        return await run_db(
            sync_responses,
            self.engine,
            event_id=event_id,
            rows=rows,
            person_field=self.person_field,
        )

    async def _run(self, event_id: int) -> None:
        try:
            while True:
                try:
                    result = await self.sync_once(event_id)
                except Exception:
                    # Keep the loop alive; the next tick may succeed
                    logger.exception("Live sync tick failed for event %d", event_id)
                    result = None

                if result is not None and result.error_kind in _TERMINAL_KINDS:
                    logger.info(
                        "Live sync for event %d ended: %s", event_id, result.message
                    )
                    break
                await asyncio.sleep(self.interval)
        finally:
            if self._tasks.get(event_id) is asyncio.current_task():
                del self._tasks[event_id]
