"""
Authentication-state snapshots.

A signed-in browser context can be saved with Playwright's
``storage_state`` and loaded into later contexts, which lets tests start
logged in without replaying the sign-up and login modals every time.
The snapshot is written once per run and reused while it is fresh.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from playwright.sync_api import BrowserContext

logger = logging.getLogger(__name__)

DEFAULT_AUTH_FILE = Path("playwright/.auth/user.json")
DEFAULT_MAX_AGE_SECONDS = 3600


def is_fresh(path: Path, max_age: float = DEFAULT_MAX_AGE_SECONDS) -> bool:
    """Return True if *path* exists and was written less than *max_age* seconds ago."""
    try:
        modified = Path(path).stat().st_mtime
    except FileNotFoundError:
        return False
    return (time.time() - modified) < max_age


def write_state(state: dict[str, Any], path: Path) -> Path:
    """
    Write a storage-state document atomically.

    Parallel workers may race to create the snapshot, so the document is
    written to a temporary file in the same directory and moved into
    place.  Readers never observe a half-written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(state, handle, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("Saved authentication state to %s", path)
    return path


def save_context_state(context: BrowserContext, path: Path = DEFAULT_AUTH_FILE) -> Path:
    """Snapshot cookies and local storage of a signed-in context."""
    return write_state(context.storage_state(), path)
