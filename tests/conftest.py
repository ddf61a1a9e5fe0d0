"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest

from railsync.collector.buffer import ResultBuffer
from railsync.models.config import SyncConfig
from railsync.models.results import CaseResult
from railsync.models.testrail import ConfigGroup, ConfigItem, Plan, PlanEntry, Project, Run, Suite
from railsync.testrail.client import TestRailClient


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def env() -> dict[str, str]:
    """A minimal valid environment."""
    return {
        "TESTRAIL_HOST": "https://example.testrail.io",
        "TESTRAIL_USERNAME": "qa@example.com",
        "TESTRAIL_PASSWORD": "secret-key",
    }


@pytest.fixture
def sync_config() -> SyncConfig:
    """Plan-mode configuration with include-all runs."""
    return SyncConfig(
        host="https://example.testrail.io",
        username="qa@example.com",
        password="secret-key",
        project_id=59,
        test_scope="smoke",
        environment="staging",
        branch="main",
    )


@pytest.fixture(autouse=True)
def _no_testrail_env(monkeypatch):
    """Keep the developer's TestRail settings out of the tests."""
    for var in ("TESTRAIL_REPORT", "TESTRAIL_PLAN_ID", "TESTRAIL_PROJECT_ID", "TESTRAIL_MODE",
                "TESTRAIL_CLOSE", "TESTRAIL_INCLUDE_ALL", "TESTRAIL_SINGLE_SUITE", "TESTRAIL_SUITE_NAME",
                "TESTRAIL_SUITE_ID", "TESTRAIL_CONFIG_GROUP", "TESTRAIL_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


# ============================================================================
# TestRail Fixtures
# ============================================================================


@pytest.fixture
def chrome_firefox_plan() -> Plan:
    """A plan with one entry holding a Chrome run (501) and a Firefox run (502)."""
    return Plan(
        id=900,
        name="Generated plan",
        url="https://example.testrail.io/index.php?/plans/view/900",
        entries=[PlanEntry(
            id="entry-1",
            name="Regression suite",
            suite_id=849,
            runs=[
                Run(id=501, name="Regression suite", config="Chrome", plan_id=900),
                Run(id=502, name="Regression suite", config="Firefox", plan_id=900),
            ],
        )],
    )


@pytest.fixture
def browser_group() -> ConfigGroup:
    return ConfigGroup(
        id=3,
        name="Web Browsers",
        configs=[
            ConfigItem(id=11, name="Chrome", group_id=3),
            ConfigItem(id=12, name="Edge", group_id=3),
            ConfigItem(id=13, name="Firefox", group_id=3),
        ],
    )


@pytest.fixture
def client(browser_group: ConfigGroup) -> Mock:
    """A TestRail client double answering the begin-phase lookups."""
    mock = Mock(spec=TestRailClient)
    mock.get_project.return_value = Project(id=59, name="E2E")
    mock.get_suites.return_value = [Suite(id=849, name="Regression suite")]
    mock.get_configs.return_value = [browser_group]
    mock.add_results_for_cases.return_value = []
    return mock


@pytest.fixture
def buffer() -> ResultBuffer:
    """Results for Chrome (two cases) and Firefox (one case)."""
    buf = ResultBuffer()
    buf.record(CaseResult(case_id=101, status_id=1), "Chrome")
    buf.record(CaseResult(case_id=102, status_id=5), "Chrome")
    buf.record(CaseResult(case_id=201, status_id=1), "Firefox")
    return buf
