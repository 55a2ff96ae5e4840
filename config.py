"""
Run profile configuration module.

This module turns the named run profiles in ``profiles.yml`` into
immutable ``RunProfile`` objects.  Values that depend on the machine the
suite runs on (CI or a laptop, headed or not, which browsers are
installed) are read from environment variables with sensible defaults.

Profiles are layered:

1. the ``defaults`` mapping,
2. the named profile,
3. the profile's ``ci`` mapping when ``CI`` is set.

Projects (browser/device combinations) are declared once in the
``projects`` catalogue and referenced by name from each profile.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from demoblaze_e2e.errors import ProfileError

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent
PROFILES_FILE = BASE_DIR / "profiles.yml"

DEFAULT_BASE_URL = "https://www.demoblaze.com"
DEFAULT_AUTH_STATE_PATH = "playwright/.auth/user.json"

TRACE_POLICIES = ("off", "on", "on-first-retry", "retain-on-failure")
SCREENSHOT_POLICIES = ("off", "on", "only-on-failure")
VIDEO_POLICIES = ("off", "on", "retain-on-failure")
REPORTERS = ("list", "summary", "junit")

# Subdirectory of output_dir that pytest-playwright may empty at session start.
PLAYWRIGHT_OUTPUT_SUBDIR = ".playwright"

# Project groups that environment flags can switch off.
GROUP_CORE = "core"
GROUP_EXTRA_BROWSERS = "extra-browsers"
GROUP_MOBILE = "mobile"

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, environ: Mapping[str, str] | None = None) -> bool:
    """Return True when the variable is set to a truthy value (1/true/yes/on)."""
    environ = os.environ if environ is None else environ
    return environ.get(name, "").strip().lower() in _TRUTHY


class Settings:
    """Machine-level settings read from environment variables."""

    def __init__(self, environ: Mapping[str, str] | None = None):
        environ = os.environ if environ is None else environ

        self.base_url: str = environ.get("BASE_URL", DEFAULT_BASE_URL).rstrip("/")
        self.ci: bool = env_flag("CI", environ)
        self.test_all_browsers: bool = env_flag("TEST_ALL_BROWSERS", environ)
        self.skip_mobile: bool = env_flag("SKIP_MOBILE", environ)
        self.headed: bool = env_flag("HEADED", environ)
        self.profile: str = environ.get("TEST_PROFILE", "default")
        self.auth_state_path = Path(environ.get("AUTH_STATE_PATH", DEFAULT_AUTH_STATE_PATH))

        try:
            self.slow_mo: int = int(environ.get("SLOW_MO", "0") or 0)
        except ValueError as exc:
            raise ProfileError(f"SLOW_MO must be an integer, got {environ['SLOW_MO']!r}") from exc

    def group_enabled(self, group: str) -> bool:
        """Decide whether projects of *group* take part in this run."""
        if group == GROUP_EXTRA_BROWSERS:
            return not self.ci or self.test_all_browsers
        if group == GROUP_MOBILE:
            return not (self.ci or self.skip_mobile)
        return True


@dataclass(frozen=True)
class Project:
    """One browser configuration a test runs against."""

    name: str
    browser: str = "chromium"
    device: str | None = None
    channel: str | None = None
    viewport: dict[str, int] | None = None
    group: str = GROUP_CORE


@dataclass(frozen=True)
class RunProfile:
    """A resolved run profile; see ``profiles.yml`` for the meaning of each key."""

    name: str
    test_dir: str = "tests"
    test_match: str = "test_*.py"
    test_ignore: tuple[str, ...] = ()
    markers: str | None = None
    fully_parallel: bool = True
    retries: int = 0
    workers: int | str = "auto"
    timeout: int = 30
    expect_timeout: int = 10_000
    action_timeout: int = 15_000
    navigation_timeout: int = 30_000
    reporters: tuple[str, ...] = ("list", "summary")
    junit_xml: str | None = None
    output_dir: str = "test-results"
    trace: str = "on-first-retry"
    screenshot: str = "only-on-failure"
    video: str = "retain-on-failure"
    slow_mo: int = 0
    headless: bool = True
    viewport: dict[str, int] | None = None
    project_filters: bool = True
    projects: tuple[Project, ...] = field(default_factory=tuple)

    def project_named(self, name: str) -> Project:
        """Look up one of this profile's projects by name."""
        for project in self.projects:
            if project.name == name:
                return project
        raise ProfileError(f"Project {name!r} is not part of profile {self.name!r}")


_PROFILE_KEYS = {f for f in RunProfile.__dataclass_fields__ if f not in ("name",)} | {"ci"}
_PROJECT_KEYS = set(Project.__dataclass_fields__) - {"name"}


def load_profiles(path: Path = PROFILES_FILE) -> dict[str, Any]:
    """
    Read the raw profile document from a YAML file.

    Args:
        path: Path to the profiles file.

    Returns:
        Mapping with ``defaults``, ``projects`` and ``profiles`` keys.

    Raises:
        ProfileError: If the file is missing, is not valid YAML, or lacks
            the ``profiles`` mapping.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ProfileError(f"Cannot read profiles file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ProfileError(f"Malformed profiles file {path}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("profiles"), dict):
        raise ProfileError(f"Profiles file {path} must define a 'profiles' mapping")

    data.setdefault("defaults", {})
    data.setdefault("projects", {})
    return data


def _check_choice(key: str, value: Any, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ProfileError(f"Invalid {key} policy {value!r}; expected one of {', '.join(choices)}")


def _build_project(name: str, catalogue: Mapping[str, Any]) -> Project:
    if name not in catalogue:
        raise ProfileError(f"Unknown project {name!r}")
    spec = catalogue[name] or {}
    unknown = set(spec) - _PROJECT_KEYS
    if unknown:
        raise ProfileError(f"Unknown keys for project {name!r}: {', '.join(sorted(unknown))}")
    return Project(name=name, **spec)


def _resolve_workers(value: Any) -> int | str:
    if value == "auto":
        return value
    try:
        workers = int(value)
    except (TypeError, ValueError) as exc:
        raise ProfileError(f"workers must be 'auto' or a positive integer, got {value!r}") from exc
    if workers < 1:
        raise ProfileError(f"workers must be 'auto' or a positive integer, got {value!r}")
    return workers


def playwright_output_dir(requested: str | Path, output_dir: str | Path) -> Path:
    """
    Choose the directory handed to pytest-playwright's ``--output`` option.

    pytest-playwright deletes that directory when each session (and each
    xdist worker) starts.  When it would contain the profile's own
    ``output_dir``, a private subdirectory is used instead so screenshots,
    traces and summaries written by earlier workers survive.
    """
    requested = Path(requested)
    artifacts = Path(output_dir).resolve()
    resolved = requested.resolve()
    if resolved == artifacts or resolved in artifacts.parents:
        return Path(output_dir) / PLAYWRIGHT_OUTPUT_SUBDIR
    return requested


def get_profile(
    name: str,
    settings: Settings | None = None,
    path: Path = PROFILES_FILE,
) -> RunProfile:
    """
    Resolve a named run profile for the current environment.

    Args:
        name: Profile name (default, dev, smoke, regression).
        settings: Environment settings; read from ``os.environ`` if None.
        path: Profiles file to load.

    Returns:
        The resolved, validated profile.

    Raises:
        ProfileError: If the profile is unknown or any value is invalid.
    """
    settings = settings or Settings()
    data = load_profiles(path)

    profiles = data["profiles"]
    if name not in profiles:
        raise ProfileError(f"Unknown profile {name!r}; available: {', '.join(sorted(profiles))}")

    values: dict[str, Any] = dict(data["defaults"])
    values.update(profiles[name] or {})
    ci_overrides = values.pop("ci", None) or {}
    if settings.ci:
        values.update(ci_overrides)

    unknown = set(values) - _PROFILE_KEYS
    if unknown:
        raise ProfileError(f"Unknown keys in profile {name!r}: {', '.join(sorted(unknown))}")

    _check_choice("trace", values.get("trace", "on-first-retry"), TRACE_POLICIES)
    _check_choice("screenshot", values.get("screenshot", "only-on-failure"), SCREENSHOT_POLICIES)
    _check_choice("video", values.get("video", "retain-on-failure"), VIDEO_POLICIES)
    for reporter in values.get("reporters", ()):
        _check_choice("reporter", reporter, REPORTERS)

    if "workers" in values:
        values["workers"] = _resolve_workers(values["workers"])

    # "env" defers to the SLOW_MO variable so one profile serves every pace.
    if values.get("slow_mo") == "env":
        values["slow_mo"] = settings.slow_mo

    if settings.headed:
        values["headless"] = False

    projects = tuple(
        project
        for project in (_build_project(p, data["projects"]) for p in values.pop("projects", ["chromium"]))
        if not values.get("project_filters", True) or settings.group_enabled(project.group)
    )
    if not projects:
        raise ProfileError(f"Profile {name!r} selects no projects in this environment")

    for key in ("test_ignore", "reporters"):
        if key in values:
            values[key] = tuple(values[key] or ())

    try:
        return RunProfile(name=name, projects=projects, **values)
    except TypeError as exc:
        raise ProfileError(f"Invalid profile {name!r}: {exc}") from exc
