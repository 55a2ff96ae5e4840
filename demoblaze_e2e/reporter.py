"""
Run summary reporter.

Collects one record per test while the suite runs and, when the run
ends, prints a boxed console summary and writes three artifacts into the
output directory:

- ``summary.html`` -- styled report with stat cards and a results table
- ``SUMMARY.md``   -- the same statistics plus a per-browser breakdown
- ``summary.json`` -- structured data for CI jobs

The lifecycle methods (``on_begin``, ``on_test_begin``, ``on_test_end``,
``on_end``) know nothing about pytest.  The ``pytest_*`` methods adapt
pytest's report stream to them: setup, call and teardown reports are
folded into a single record, and ``rerun`` reports from
pytest-rerunfailures are counted as retries of the same test.

Key Concepts Demonstrated:
- pytest plugin object registered at configure time
- Aggregating per-phase reports into per-test outcomes
- Template-based artifact rendering (Jinja2)
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from jinja2 import Environment, PackageLoader, select_autoescape

logger = logging.getLogger(__name__)

UNKNOWN_BROWSER = "unknown"
PROJECT_PROPERTY = "project"

HTML_FILE = "summary.html"
MARKDOWN_FILE = "SUMMARY.md"
JSON_FILE = "summary.json"

STATUS_ICONS = {"passed": "✅", "failed": "❌", "skipped": "⏭️"}

_BOX_WIDTH = 59
_VALUE_WIDTH = 39


@dataclass
class ResultRecord:
    """Outcome of one test, as shown in the detailed results table."""

    title: str
    browser: str
    status: str
    duration: int
    file: str | None = None
    line: int | None = None
    error: str | None = None
    retries: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _PendingTest:
    title: str
    browser: str
    file: str | None
    line: int | None
    status: str = "passed"
    duration: float = 0.0
    error: str | None = None


def pass_rate(passed: int, total: int) -> float:
    """Percentage of passed tests rounded to two decimals; 0.0 for an empty run."""
    if total == 0:
        return 0.0
    return round(passed / total * 100, 2)


def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("demoblaze_e2e", "templates"),
        autoescape=select_autoescape(enabled_extensions=("html", "html.j2"), default_for_string=False),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _first_line(text: str | None) -> str:
    stripped = (text or "").strip()
    return stripped.splitlines()[0] if stripped else ""


def _browser_of(report: pytest.TestReport) -> str:
    for name, value in report.user_properties:
        if name == PROJECT_PROPERTY:
            return str(value)
    return UNKNOWN_BROWSER


def _error_message(report: pytest.TestReport) -> str:
    crash = getattr(report.longrepr, "reprcrash", None)
    message = getattr(crash, "message", None)
    return message or report.longreprtext


class SummaryReporter:
    """
    Aggregate test outcomes and render the end-of-run summaries.

    Attributes:
        output_dir: Directory the summary files are written to.
        results: Records in the order their tests finished.
        browsers: Browser/project labels in first-seen order.
    """

    def __init__(
        self,
        output_dir: str | Path = "test-results",
        write: Callable[[str], Any] = print,
        project_count: int = 1,
        clock: Callable[[], float] = time.time,
    ):
        self.output_dir = Path(output_dir)
        self.write = write
        self.project_count = project_count
        self.clock = clock

        self.start_time: float | None = None
        self.end_time: float | None = None
        self.expected_tests = 0
        self.passed = 0
        self.failed = 0
        self.skipped = 0
        self.results: list[ResultRecord] = []
        self.browsers: dict[str, None] = {}

        self._pending: dict[str, _PendingTest] = {}
        self._retries: Counter[str] = Counter()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def on_begin(self, total_tests: int, project_count: int | None = None) -> None:
        """Record the start of the run and print the opening banner."""
        if self.start_time is not None:
            return
        self.start_time = self.clock()
        self.expected_tests = total_tests
        if project_count is not None:
            self.project_count = project_count

        self.write("")
        self.write("╔" + "═" * _BOX_WIDTH + "╗")
        self.write("║   🛍️  Demoblaze E2E Test Execution Started" + " " * 14 + "║")
        self.write("╚" + "═" * _BOX_WIDTH + "╝")
        self.write(f"📊 Total tests to run: {total_tests}")
        self.write(f"🌐 Testing on {self.project_count} browser configurations")
        self.write("")

    def on_test_begin(self, title: str, browser: str) -> None:
        """Remember the browser label and announce the test."""
        self.browsers.setdefault(browser, None)
        self.write(f"🧪 Running: {title} [{browser}]")

    def on_test_end(self, record: ResultRecord) -> None:
        """Store the finished test's record and update the counters."""
        self.results.append(record)
        self.browsers.setdefault(record.browser, None)

        if record.status == "passed":
            self.passed += 1
            self.write(f"   ✅ PASSED [{record.browser}] - {record.duration}ms")
        elif record.status == "failed":
            self.failed += 1
            self.write(f"   ❌ FAILED [{record.browser}] - {record.duration}ms")
            if record.error:
                self.write(f"   📝 Error: {_first_line(record.error)}")
        elif record.status == "skipped":
            self.skipped += 1
            self.write(f"   ⏭️  SKIPPED [{record.browser}]")

    def on_end(self) -> dict[str, Any]:
        """
        Print the console summary and write all summary artifacts.

        Returns:
            The summary document that was written to ``summary.json``.
        """
        if self.start_time is None:
            self.start_time = self.clock()
        self.end_time = self.clock()

        summary = self.build_summary()
        self._print_summary(summary["summary"])

        self.output_dir.mkdir(parents=True, exist_ok=True)
        generated = datetime.now()
        self._write_html(summary, generated)
        self._write_markdown(summary, generated)
        self._write_json(summary)
        return summary

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def duration_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else self.clock()
        return round(end - self.start_time, 2)

    def browser_results(self) -> list[dict[str, Any]]:
        """Per-browser totals in first-seen order."""
        breakdown = []
        for browser in self.browsers:
            tests = [r for r in self.results if r.browser == browser]
            passed = sum(1 for r in tests if r.status == "passed")
            breakdown.append(
                {
                    "browser": browser,
                    "total": len(tests),
                    "passed": passed,
                    "failed": sum(1 for r in tests if r.status == "failed"),
                    "skipped": sum(1 for r in tests if r.status == "skipped"),
                    "passRate": pass_rate(passed, len(tests)),
                }
            )
        return breakdown

    def build_summary(self) -> dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": {
                "totalTests": self.total,
                "passed": self.passed,
                "failed": self.failed,
                "skipped": self.skipped,
                "passRate": pass_rate(self.passed, self.total),
                "duration": self.duration_seconds,
                "browsers": list(self.browsers),
            },
            "browserResults": self.browser_results(),
            "detailedResults": [record.to_dict() for record in self.results],
        }

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def _box_line(self, label: str, value: Any) -> str:
        return f"║ {label}{str(value).ljust(_VALUE_WIDTH)}║"

    def _print_summary(self, stats: dict[str, Any]) -> None:
        self.write("")
        self.write("╔" + "═" * _BOX_WIDTH + "╗")
        self.write("║   📊 Demoblaze E2E Test Execution Summary" + " " * 16 + "║")
        self.write("╠" + "═" * _BOX_WIDTH + "╣")
        self.write(self._box_line("Total Tests:     ", stats["totalTests"]))
        self.write(self._box_line("✅ Passed:       ", stats["passed"]))
        self.write(self._box_line("❌ Failed:       ", stats["failed"]))
        self.write(self._box_line("⏭️  Skipped:      ", stats["skipped"]))
        self.write(self._box_line("📈 Pass Rate:    ", f"{stats['passRate']:.2f}%"))
        self.write(self._box_line("⏱️  Duration:     ", f"{stats['duration']:.2f}s"))
        self.write(self._box_line("🌐 Browsers:     ", ", ".join(stats["browsers"])))
        self.write("╚" + "═" * _BOX_WIDTH + "╝")
        self.write("")

    def _template_context(self, summary: dict[str, Any], generated: datetime) -> dict[str, Any]:
        return {
            "generated": generated.strftime("%Y-%m-%d %H:%M:%S"),
            "stats": summary["summary"],
            "browser_results": summary["browserResults"],
            "results": self.results,
            "icons": STATUS_ICONS,
        }

    def _write_html(self, summary: dict[str, Any], generated: datetime) -> Path:
        template = _template_env().get_template("summary.html.j2")
        path = self.output_dir / HTML_FILE
        path.write_text(template.render(**self._template_context(summary, generated)), encoding="utf-8")
        self.write(f"📄 Enhanced HTML summary generated: {path}")
        logger.info("Wrote HTML summary to %s", path)
        return path

    def _write_markdown(self, summary: dict[str, Any], generated: datetime) -> Path:
        template = _template_env().get_template("summary.md.j2")
        path = self.output_dir / MARKDOWN_FILE
        path.write_text(template.render(**self._template_context(summary, generated)), encoding="utf-8")
        self.write(f"📄 Markdown summary generated: {path}")
        logger.info("Wrote Markdown summary to %s", path)
        return path

    def _write_json(self, summary: dict[str, Any]) -> Path:
        path = self.output_dir / JSON_FILE
        path.write_text(json.dumps(summary, indent=2, ensure_ascii=False), encoding="utf-8")
        self.write(f"📄 JSON summary generated: {path}")
        logger.info("Wrote JSON summary to %s", path)
        return path

    # -------------------------------------------------------------------------
    # pytest hooks
    # -------------------------------------------------------------------------

    def pytest_collection_finish(self, session: pytest.Session) -> None:
        self.on_begin(len(session.items))

    @pytest.hookimpl(optionalhook=True)
    def pytest_xdist_node_collection_finished(self, node: Any, ids: list[str]) -> None:
        # Every worker collects the full suite; the first one sets the total.
        self.on_begin(len(ids))

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        nodeid = report.nodeid

        if report.outcome == "rerun":
            self._retries[nodeid] += 1
            self._pending.pop(nodeid, None)
            return

        if report.when == "setup":
            title = report.head_line or nodeid
            browser = _browser_of(report)
            fspath, lineno, _ = report.location
            self.on_test_begin(title, browser)
            self._pending[nodeid] = _PendingTest(
                title=title,
                browser=browser,
                file=fspath,
                line=lineno + 1 if lineno is not None else None,
            )

        pending = self._pending.get(nodeid)
        if pending is None:
            return

        pending.duration += report.duration
        if report.failed and pending.status != "failed":
            pending.status = "failed"
            pending.error = _error_message(report)
        elif report.skipped and pending.status == "passed":
            pending.status = "skipped"

        if report.when == "teardown":
            del self._pending[nodeid]
            self.on_test_end(
                ResultRecord(
                    title=pending.title,
                    browser=pending.browser,
                    status=pending.status,
                    duration=int(round(pending.duration * 1000)),
                    file=pending.file,
                    line=pending.line,
                    error=pending.error,
                    retries=self._retries.pop(nodeid, 0),
                )
            )

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        # Nothing ran; keep the previous run's summary files.
        if session.config.getoption("collectonly", False):
            return
        self.on_end()
