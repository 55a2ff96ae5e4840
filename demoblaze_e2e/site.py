"""Reachability checks for the storefront under test."""

from __future__ import annotations

import logging
import time

import requests

logger = logging.getLogger(__name__)


def is_site_reachable(url: str, timeout: int = 5) -> bool:
    """Return True when the storefront root answers with a non-error status."""
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning("Storefront at %s is unreachable: %s", url, exc)
        return False
    return response.status_code < 400


def wait_for_site(url: str, timeout: int = 30, interval: int = 2) -> bool:
    """
    Poll the storefront until it responds or *timeout* seconds pass.

    Returns:
        True if the site became reachable, False otherwise.
    """
    deadline = time.time() + timeout
    while time.time() < deadline:
        if is_site_reachable(url, timeout=interval):
            return True
        time.sleep(interval)
    return False
