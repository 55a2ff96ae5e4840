"""
Project assignment for collected test items.

pytest-playwright parametrizes every test over ``browser_name``; the
suite feeds it the profile's project names.  Browser tests (those that
use the ``project`` fixture) keep all of their copies and are labelled
for the summary reporter.  Browser-free tests only need one copy.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from demoblaze_e2e.reporter import PROJECT_PROPERTY

BROWSER_PARAM = "browser_name"
PROJECT_FIXTURE = "project"


def assign_projects(items: Iterable[Any], project_names: Sequence[str]) -> tuple[list[Any], list[Any]]:
    """
    Split collected items into those to run and those to deselect.

    Args:
        items: Collected pytest items.
        project_names: Project names of the active profile, in order.

    Returns:
        ``(selected, deselected)``.  Selected browser tests carry a
        ``("project", name)`` entry in ``user_properties``.
    """
    first = project_names[0] if project_names else None
    selected: list[Any] = []
    deselected: list[Any] = []

    for item in items:
        callspec = getattr(item, "callspec", None)
        name = callspec.params.get(BROWSER_PARAM) if callspec else None
        if name is None:
            selected.append(item)
        elif PROJECT_FIXTURE in item.fixturenames:
            item.user_properties.append((PROJECT_PROPERTY, name))
            selected.append(item)
        elif name == first:
            selected.append(item)
        else:
            deselected.append(item)

    return selected, deselected
