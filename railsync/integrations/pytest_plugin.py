"""pytest plugin: report test outcomes to TestRail at the end of the session.

Tests point at TestRail cases with ``@pytest.mark.testrail(101, 102)`` or
with a docstring title such as ``"Login works => 101 102"``. The browser of
a pytest-playwright parametrized test decides its configuration label:
Playwright names map to TestRail names (``chromium`` -> ``Chrome``), and
the ``testrail_configurations`` ini option can override the mapping with
lines such as ``chromium=Chrome Stable``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import pytest

from railsync.collector.case_ids import CASE_ANNOTATION_TYPE
from railsync.errors import ConfigurationError
from railsync.models.config import SyncConfig
from railsync.models.results import Annotation, Outcome, TestEvent
from railsync.reporter.reporter import TestRailReporter

logger = logging.getLogger(__name__)

DEFAULT_CONFIGURATION = "Chrome"
PLUGIN_NAME = "railsync-reporter"

# Playwright browser names and channels -> TestRail configuration names
BROWSER_LABELS = {
    "chromium": "Chrome",
    "chrome": "Chrome",
    "chrome-beta": "Chrome",
    "msedge": "Edge",
    "msedge-beta": "Edge",
    "firefox": "Firefox",
    "webkit": "Safari",
}

_TITLE = "testrail_title"
_ANNOTATIONS = "testrail_annotations"
_CONFIGURATION = "testrail_configuration"


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("testrail", "TestRail synchronization")
    group.addoption(
        "--testrail", action="store_true", default=False,
        help="Report results to TestRail (same as TESTRAIL_REPORT=true)",
    )
    group.addoption(
        "--testrail-ledger", default=None, metavar="PATH",
        help="Also write the collected TestRail results to a JSON ledger",
    )
    parser.addini(
        "testrail_configurations", type="linelist", default=[],
        help="Execution configuration labels, or browser=Label lines (defaults to the --browser values)",
    )


def _is_enabled(config: pytest.Config) -> bool:
    return bool(config.getoption("testrail")) or SyncConfig.is_enabled()


def _ini_configurations(config: pytest.Config) -> tuple[list[str], dict[str, str]]:
    """Plain labels and ``browser=Label`` mappings from the ini option."""
    labels: list[str] = []
    mapping: dict[str, str] = {}
    for line in config.getini("testrail_configurations"):
        browser, sep, label = (part.strip() for part in line.partition("="))
        if sep and browser and label:
            mapping[browser.lower()] = label
            labels.append(label)
        elif line.strip():
            labels.append(line.strip())
    return list(dict.fromkeys(labels)), mapping


def browser_label(browser: str, mapping: Optional[dict[str, str]] = None) -> str:
    """TestRail configuration label for a Playwright browser name or channel."""
    key = browser.strip().lower()
    return (mapping or {}).get(key) or BROWSER_LABELS.get(key) or browser


def configuration_labels(config: pytest.Config) -> list[str]:
    """Labels from the ini option, else pytest-playwright's --browser values."""
    labels, mapping = _ini_configurations(config)
    if labels:
        return labels
    browsers = config.getoption("browser", default=None)
    if browsers:
        browsers = list(browsers) if isinstance(browsers, (list, tuple)) else [browsers]
        channel = config.getoption("browser_channel", default=None)
        if channel:
            browsers = [channel if b == "chromium" else b for b in browsers]
        return list(dict.fromkeys(browser_label(b, mapping) for b in browsers))
    return [DEFAULT_CONFIGURATION]


def item_configuration(config: pytest.Config, item: pytest.Item, labels: list[str]) -> str:
    """Label of the browser an item runs in, else the first configured label."""
    callspec = getattr(item, "callspec", None)
    params = callspec.params if callspec is not None else {}
    browser = params.get("browser_name")
    if not browser:
        return labels[0]
    _, mapping = _ini_configurations(config)
    channel = config.getoption("browser_channel", default=None)
    if channel and browser == "chromium":
        browser = channel
    return browser_label(str(browser), mapping)


def item_title(item: pytest.Item) -> str:
    """First docstring line of the test function, else the test name."""
    doc = getattr(getattr(item, "obj", None), "__doc__", None)
    if doc and doc.strip():
        return doc.strip().splitlines()[0].strip()
    return item.name


def report_outcome(report: pytest.TestReport) -> Optional[Outcome]:
    """Outcome for a report phase, or None when the phase is not conclusive."""
    if report.when == "call":
        if report.passed:
            return Outcome.PASSED
        if report.skipped:
            return Outcome.SKIPPED
        if report.failed:
            return Outcome.TIMED_OUT if "Timeout" in report.longreprtext else Outcome.FAILED
    elif report.when == "setup":
        if report.skipped:
            return Outcome.SKIPPED
        if report.failed:
            return Outcome.FAILED
    elif report.when == "teardown" and report.failed:
        # overrides the call result of the same test
        return Outcome.FAILED
    return None


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "testrail(*case_ids): TestRail case ids verified by this test",
    )
    # pytest-xdist workers only annotate items; the controller reports
    if not _is_enabled(config) or hasattr(config, "workerinput"):
        return
    try:
        sync_config = SyncConfig.from_env()
    except ConfigurationError as e:
        raise pytest.UsageError(str(e)) from e

    ledger = config.getoption("testrail_ledger")
    plugin = TestRailPlugin(sync_config, configuration_labels(config),
                            ledger_path=Path(ledger) if ledger else None)
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        config.pluginmanager.unregister(plugin)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if not _is_enabled(config):
        return
    labels = configuration_labels(config)
    for item in items:
        annotations = [
            Annotation(type=CASE_ANNOTATION_TYPE, description=str(arg)).model_dump()
            for marker in item.iter_markers("testrail")
            for arg in marker.args
        ]
        item.user_properties.extend([
            (_TITLE, item_title(item)),
            (_ANNOTATIONS, annotations),
            (_CONFIGURATION, item_configuration(config, item, labels)),
        ])


class TestRailPlugin:
    """Bridges pytest session hooks to a TestRailReporter."""

    __test__ = False

    def __init__(
        self,
        sync_config: SyncConfig,
        labels: list[str],
        reporter: Optional[TestRailReporter] = None,
        ledger_path: Optional[Path] = None,
    ):
        self.labels = labels
        self.reporter = reporter or TestRailReporter(
            sync_config, abort=self._abort, ledger_path=ledger_path,
        )
        self.reporter.abort = self._abort
        self._started = False
        self._exit_code: Optional[int] = None
        self._collected: Optional[int] = None

    def _abort(self, code: int) -> None:
        if not self._started:
            pytest.exit("TestRail synchronization aborted", returncode=code)
        self._exit_code = code

    @pytest.hookimpl(tryfirst=True)
    def pytest_runtestloop(self, session: pytest.Session) -> None:
        # the pytest-xdist controller collects nothing itself
        distributed = session.config.pluginmanager.has_plugin("dsession")
        self.reporter.on_run_begin(None if distributed else len(session.items), self.labels)
        self._started = True

    @pytest.hookimpl(optionalhook=True)
    def pytest_xdist_node_collection_finished(self, node, ids: list[str]) -> None:
        if self._collected is None:
            self._collected = len(ids)
            logger.info("pytest-xdist workers collected %d tests", self._collected)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        props = dict(report.user_properties)
        if _TITLE not in props:
            return
        outcome = report_outcome(report)
        if outcome is None:
            return
        self.reporter.on_test_end(TestEvent(
            title=props[_TITLE],
            annotations=[Annotation.model_validate(a) for a in props.get(_ANNOTATIONS, [])],
            outcome=outcome,
            duration_ms=int(report.duration * 1000),
            configuration=props.get(_CONFIGURATION, ""),
            location=report.nodeid,
        ))

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        if not self._started:
            return
        status = "passed" if exitstatus == pytest.ExitCode.OK else "failed"
        self.reporter.on_run_end(status)
        if self._exit_code is not None:
            session.exitstatus = self._exit_code
