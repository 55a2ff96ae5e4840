"""
Profile launcher for the Demoblaze E2E suite.

Turns a named run profile into pytest arguments and runs pytest
in-process::

    demoblaze-e2e --profile smoke
    demoblaze-e2e --profile regression -- -k checkout
    demoblaze-e2e --profile dev --dry-run

Runner knobs (workers, retries, per-test timeout, marker expression,
file selection, JUnit output) become command-line arguments here.  The
in-process knobs (projects, Playwright timeouts, capture policies,
summary reporter) are applied by the root ``conftest.py`` from the
``--run-profile`` option passed through.

Exit codes follow pytest's, plus one of our own:

- ``0`` -- all selected tests passed
- ``1``-``5`` -- pytest's exit codes (failures, interruption, usage, ...)
- ``2`` -- the profile could not be resolved (unknown name, bad file)
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

from config import PROFILES_FILE, RunProfile, Settings, get_profile
from demoblaze_e2e.errors import ProfileError

logger = logging.getLogger(__name__)

EXIT_USAGE = 2
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def parse_args(argv: Sequence[str] | None = None) -> tuple[argparse.Namespace, list[str]]:
    """Parse launcher options; anything unrecognised is forwarded to pytest."""
    parser = argparse.ArgumentParser(
        prog="demoblaze-e2e",
        description="Run the Demoblaze E2E suite with a named run profile.",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Run profile name (default: $TEST_PROFILE or 'default')",
    )
    parser.add_argument(
        "--profiles-file",
        type=Path,
        default=PROFILES_FILE,
        help="Path to the profiles YAML file",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the pytest command line instead of running it",
    )
    args, extra = parser.parse_known_args(argv)
    if extra and extra[0] == "--":
        extra = extra[1:]
    return args, extra


def build_pytest_args(profile: RunProfile, extra: Sequence[str] = ()) -> list[str]:
    """
    Translate a run profile into pytest command-line arguments.

    Args:
        profile: Resolved run profile.
        extra: Additional arguments appended verbatim.

    Returns:
        Argument list suitable for ``pytest.main``.
    """
    args: list[str] = [profile.test_dir]

    # A single worker runs in-process so headed debugging and breakpoints work.
    if profile.workers != 1:
        args += ["-n", str(profile.workers)]
        args += ["--dist", "load" if profile.fully_parallel else "loadfile"]

    if profile.retries:
        args += ["--reruns", str(profile.retries)]
    if profile.timeout:
        args += ["--timeout", str(profile.timeout)]
    if profile.markers:
        args += ["-m", profile.markers]

    args += ["-o", f"python_files={profile.test_match}"]
    for pattern in profile.test_ignore:
        args += ["--ignore-glob", pattern]

    if "junit" in profile.reporters and profile.junit_xml:
        args += ["--junitxml", profile.junit_xml]
    if "list" in profile.reporters:
        args.append("-v")

    args += ["--run-profile", profile.name]
    args += list(extra)
    return args


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point: resolve the profile, build the command line, run pytest.

    Returns:
        pytest's exit code, or ``EXIT_USAGE`` (2) when the profile
        cannot be resolved.
    """
    args, extra = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    try:
        settings = Settings()
        profile = get_profile(args.profile or settings.profile, settings, args.profiles_file)
    except ProfileError as exc:
        print(f"demoblaze-e2e: {exc}", file=sys.stderr)
        return EXIT_USAGE

    pytest_args = build_pytest_args(profile, extra)
    if args.dry_run:
        print("pytest " + " ".join(pytest_args))
        return 0

    logger.info("Running profile %s: pytest %s", profile.name, " ".join(pytest_args))
    return int(pytest.main(pytest_args))


if __name__ == "__main__":
    raise SystemExit(main())
