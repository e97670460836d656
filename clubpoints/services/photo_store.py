"""
clubpoints.services.photo_store — Member Photo Storage
=======================================================

Member photos live in a local directory (``CLUBPOINTS_PHOTO_DIR``, default
``photos/``) and are served by a static-file mount at ``/api/photos``.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

PHOTO_DIR = Path(os.getenv("CLUBPOINTS_PHOTO_DIR", "photos"))
PHOTO_URL_PREFIX = "/api/photos/"
MAX_PHOTO_SIZE = 5 * 1024 * 1024  # 5 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


def ensure_photo_dir() -> None:
    PHOTO_DIR.mkdir(parents=True, exist_ok=True)


async def save_photo(filename: str, content: bytes, content_type: str | None = None) -> str:
    """Validate and store a member photo.

    Returns
    -------
    str
        URL path of the stored file (e.g. ``/api/photos/3f2a….jpg``).

    Raises
    ------
    ValueError
        If the file is too large or not an allowed image type.
    """
    if len(content) > MAX_PHOTO_SIZE:
        raise ValueError(
            f"Photo too large: {len(content)} bytes (max {MAX_PHOTO_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(f"MIME type not allowed: {content_type!r}")

    ensure_photo_dir()
    unique_name = f"{uuid.uuid4().hex}{ext}"
    await asyncio.to_thread((PHOTO_DIR / unique_name).write_bytes, content)
    return f"{PHOTO_URL_PREFIX}{unique_name}"


def delete_photo(url_path: str | None) -> bool:
    """Remove a stored photo by URL path.  Returns True if a file was deleted."""
    if not url_path or not url_path.startswith(PHOTO_URL_PREFIX):
        return False
    filepath = PHOTO_DIR / url_path.rsplit("/", 1)[-1]
    if filepath.is_file():
        filepath.unlink()
        logger.debug("Deleted photo %s", filepath)
        return True
    return False
