"""
clubpoints.services.airtable_client — Poll Source (Airtable REST)
==================================================================

The poll collaborator: ``fetch_all_rows()`` returns every record of the
configured table as a plain ``{field: value}`` dict.  Airtable pages results
100 at a time and hands back an ``offset`` token until the last page.

Synchronous on purpose: routes call it from the thread pool and live sync
calls it through :func:`clubpoints.database.engine.run_db`.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from clubpoints.config import ClubConfig

logger = logging.getLogger(__name__)

AIRTABLE_API = "https://api.airtable.com/v0"
PAGE_SIZE = 100


class PollSourceError(Exception):
    """The poll source could not be reached or returned an error."""


class AirtableClient:
    """Minimal read-only client for one Airtable table."""

    def __init__(
        self,
        base_id: str,
        table_name: str,
        api_key: str,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 10,
    ) -> None:
        self.base_id = base_id
        self.table_name = table_name
        self._api_key = api_key
        self._transport = transport
        self._timeout = timeout

    @classmethod
    def from_config(cls, cfg: ClubConfig) -> AirtableClient:
        """Build a client from ``config.yaml`` plus ``AIRTABLE_API_KEY``.

        Raises
        ------
        RuntimeError
            If the API key or the base/table settings are missing.
        """
        api_key = os.getenv("AIRTABLE_API_KEY", "").strip()
        if not api_key:
            raise RuntimeError("AIRTABLE_API_KEY environment variable is not set.")
        if not cfg.airtable_base_id or not cfg.airtable_table_name:
            raise RuntimeError(
                "Poll import is not configured: set airtable.base_id and "
                "airtable.table_name in config.yaml."
            )
        return cls(cfg.airtable_base_id, cfg.airtable_table_name, api_key)

    @property
    def url(self) -> str:
        return f"{AIRTABLE_API}/{self.base_id}/{self.table_name}"

    def fetch_all_rows(self) -> list[dict[str, Any]]:
        """Every record's ``fields`` dict, following ``offset`` pagination."""
        rows: list[dict[str, Any]] = []
        params: dict[str, Any] = {"pageSize": PAGE_SIZE}
        headers = {"Authorization": f"Bearer {self._api_key}"}

        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport or httpx.HTTPTransport(retries=1),
            headers=headers,
        ) as client:
            while True:
                try:
                    resp = client.get(self.url, params=params)
                except httpx.HTTPError as exc:
                    raise PollSourceError(f"Poll source unreachable: {exc}") from exc
                if resp.status_code != 200:
                    raise PollSourceError(
                        f"Poll source returned HTTP {resp.status_code}"
                    )

                payload = resp.json()
                rows.extend(
                    record.get("fields", {}) for record in payload.get("records", [])
                )
                offset = payload.get("offset")
                if not offset:
                    break
                params["offset"] = offset

        logger.debug("Fetched %d poll rows from %s", len(rows), self.table_name)
        return rows
