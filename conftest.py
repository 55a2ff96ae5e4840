"""
Root pytest configuration for the Demoblaze E2E suite.

Applies the selected run profile to the pytest session and provides the
browser fixtures every browser test builds on.  pytest-playwright's
``browser``, ``browser_context_args``, ``context`` and ``page`` fixtures
are overridden so that each test runs once per profile project (browser
or emulated device) with the profile's timeouts and capture policy.

Key Concepts Demonstrated:
- Run profiles selected with ``--run-profile`` / ``TEST_PROFILE``
- Browser projects driven through pytest-playwright's browser parametrization
- Trace, screenshot and video capture policies
- Summary reporter registered as a plugin object
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from pathlib import Path

import pytest
from playwright.sync_api import Browser, BrowserContext, Page, Playwright, expect

from config import Project, RunProfile, Settings, get_profile, playwright_output_dir
from demoblaze_e2e.errors import ProfileError
from demoblaze_e2e.projects import assign_projects
from demoblaze_e2e.reporter import SummaryReporter
from demoblaze_e2e.site import is_site_reachable

PROFILE_KEY = pytest.StashKey[RunProfile]()
SETTINGS_KEY = pytest.StashKey[Settings]()


# -----------------------------------------------------------------------------
# Session Configuration
# -----------------------------------------------------------------------------

def pytest_addoption(parser):
    group = parser.getgroup("demoblaze", "Demoblaze E2E run profiles")
    group.addoption(
        "--run-profile",
        action="store",
        default=None,
        help="Run profile from profiles.yml (default: $TEST_PROFILE or 'default')",
    )


def pytest_configure(config):
    """Resolve the run profile and register the summary reporter."""
    try:
        settings = Settings()
        profile = get_profile(config.getoption("--run-profile") or settings.profile, settings)
    except ProfileError as exc:
        raise pytest.UsageError(str(exc)) from exc

    config.stash[SETTINGS_KEY] = settings
    config.stash[PROFILE_KEY] = profile
    expect.set_options(timeout=profile.expect_timeout)

    # pytest-playwright parametrizes ``browser_name`` from --browser; one value per project.
    config.option.browser = [project.name for project in profile.projects]
    config.option.output = str(
        playwright_output_dir(getattr(config.option, "output", "test-results"), profile.output_dir)
    )

    # xdist workers forward their reports to the controller, which owns the summary.
    if "summary" in profile.reporters and not hasattr(config, "workerinput"):
        reporter = SummaryReporter(
            output_dir=profile.output_dir,
            write=_terminal_writer(config),
            project_count=len(profile.projects),
        )
        config.pluginmanager.register(reporter, "demoblaze-summary")


def _terminal_writer(config):
    def write(line: str) -> None:
        terminal = config.pluginmanager.get_plugin("terminalreporter")
        if terminal is None:
            print(line)
        else:
            terminal.write_line(line)

    return write


def pytest_collection_modifyitems(config, items):
    """Label browser tests with their project and run browser-free tests once."""
    profile = config.stash[PROFILE_KEY]
    selected, deselected = assign_projects(items, [project.name for project in profile.projects])
    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


# -----------------------------------------------------------------------------
# Profile Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def run_profile(pytestconfig) -> RunProfile:
    """The resolved run profile for this session."""
    return pytestconfig.stash[PROFILE_KEY]


@pytest.fixture(scope="session")
def settings(pytestconfig) -> Settings:
    """Environment settings (BASE_URL, CI, SLOW_MO, ...)."""
    return pytestconfig.stash[SETTINGS_KEY]


@pytest.fixture(scope="session")
def project(browser_name: str, run_profile: RunProfile) -> Project:
    """The browser or emulated device this test runs against."""
    return run_profile.project_named(browser_name)


@pytest.fixture(scope="session")
def base_url(pytestconfig, settings: Settings) -> str:
    """Storefront root URL; ``--base-url`` wins over ``BASE_URL``."""
    option = pytestconfig.getoption("base_url", None)
    return (option or settings.base_url).rstrip("/")


@pytest.fixture(scope="session")
def site_url(base_url: str) -> str:
    """Storefront URL, skipping browser tests when the site cannot be reached."""
    if not is_site_reachable(base_url):
        pytest.skip(f"Storefront at {base_url} is unreachable; set BASE_URL to a live instance")
    return base_url


# -----------------------------------------------------------------------------
# Browser Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def browser(
    playwright: Playwright, project: Project, run_profile: RunProfile, pytestconfig
) -> Generator[Browser, None, None]:
    """Launch the browser engine for the current project."""
    headless = run_profile.headless and not pytestconfig.getoption("headed", False)
    launch_args = {
        "headless": headless,
        "slow_mo": run_profile.slow_mo or pytestconfig.getoption("slowmo", 0),
    }
    if project.channel:
        launch_args["channel"] = project.channel

    browser = getattr(playwright, project.browser).launch(**launch_args)
    yield browser
    browser.close()


@pytest.fixture(scope="session")
def browser_context_args(
    playwright: Playwright, project: Project, run_profile: RunProfile, base_url: str
) -> dict:
    """Context options: device descriptor, viewport and base URL."""
    args: dict = {"ignore_https_errors": True, "base_url": base_url}
    if project.device:
        device = dict(playwright.devices[project.device])
        device.pop("default_browser_type", None)
        args.update(device)

    viewport = project.viewport or (None if project.device else run_profile.viewport)
    if viewport:
        args["viewport"] = viewport
    return args


@pytest.fixture(scope="function")
def context(
    browser: Browser,
    browser_context_args: dict,
    run_profile: RunProfile,
    request: pytest.FixtureRequest,
) -> Generator[BrowserContext, None, None]:
    """
    Create an isolated browser context with the profile's capture policy.

    Traces are started according to ``trace`` and written on teardown;
    videos recorded under ``retain-on-failure`` are deleted when the
    test passed.
    """
    output_dir = Path(run_profile.output_dir)
    args = dict(browser_context_args)
    if run_profile.video != "off":
        args["record_video_dir"] = str(output_dir / "videos")

    context = browser.new_context(**args)
    context.set_default_timeout(run_profile.action_timeout)
    context.set_default_navigation_timeout(run_profile.navigation_timeout)

    tracing = _should_trace(run_profile.trace, request.node)
    if tracing:
        context.tracing.start(screenshots=True, snapshots=True, sources=True)

    yield context

    failed = _test_failed(request.node)
    if tracing:
        if run_profile.trace == "retain-on-failure" and not failed:
            context.tracing.stop()
        else:
            trace_dir = output_dir / "traces"
            trace_dir.mkdir(parents=True, exist_ok=True)
            context.tracing.stop(path=str(trace_dir / f"{_artifact_name(request.node)}.zip"))

    videos = [p.video for p in context.pages if p.video]
    context.close()
    if run_profile.video == "retain-on-failure" and not failed:
        for video in videos:
            video.delete()


@pytest.fixture(scope="function")
def page(context: BrowserContext) -> Generator[Page, None, None]:
    page = context.new_page()
    yield page
    page.close()


def _should_trace(policy: str, item: pytest.Item) -> bool:
    if policy == "on-first-retry":
        # pytest-rerunfailures counts runs from 1.
        return getattr(item, "execution_count", 1) == 2
    return policy in ("on", "retain-on-failure")


def _test_failed(item: pytest.Item) -> bool:
    return any(
        getattr(getattr(item, f"rep_{when}", None), "failed", False)
        for when in ("setup", "call")
    )


def _artifact_name(item: pytest.Item) -> str:
    return re.sub(r"[^\w.-]+", "_", item.nodeid).strip("_")


# -----------------------------------------------------------------------------
# Hooks
# -----------------------------------------------------------------------------

@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Remember phase reports and capture screenshots per the profile policy."""
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)

    if report.when != "call":
        return

    policy = item.config.stash[PROFILE_KEY].screenshot
    if policy == "off" or (policy == "only-on-failure" and not report.failed):
        return

    page = item.funcargs.get("page") or item.funcargs.get("authenticated_page")
    if page:
        screenshot_dir = os.path.join(item.config.stash[PROFILE_KEY].output_dir, "screenshots")
        os.makedirs(screenshot_dir, exist_ok=True)
        screenshot_path = f"{screenshot_dir}/{_artifact_name(item)}.png"
        try:
            page.screenshot(path=screenshot_path, full_page=True)
            print(f"\nScreenshot saved: {screenshot_path}")
        except Exception as exc:  # pragma: no cover - best effort logging
            print(f"\nFailed to capture screenshot: {exc}")
