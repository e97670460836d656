"""
clubpoints.__main__ — Entry point for ``python -m clubpoints``
==============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the dashboard API with uvicorn (blocking).

Run with::

    python -m clubpoints
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from clubpoints.config import load_config
from clubpoints.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("clubpoints")


def main() -> None:
    """Bootstrap and serve the Club Points API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except FileNotFoundError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    logger.info("Config loaded — Club: %s", cfg.club_name)

    # 3. Database.
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    init_db(engine)

    # 4. API (blocks until Ctrl+C or SIGTERM).
    uvicorn.run("clubpoints.api.main:app", host="0.0.0.0", port=cfg.dashboard_port)


if __name__ == "__main__":
    main()
