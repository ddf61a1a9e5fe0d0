"""Tests for the pytest integration."""

import logging
from unittest.mock import Mock, patch

import pytest

from railsync.integrations import pytest_plugin
from railsync.integrations.pytest_plugin import (
    PLUGIN_NAME,
    TestRailPlugin,
    browser_label,
    configuration_labels,
    item_configuration,
    item_title,
    report_outcome,
)
from railsync.models.results import Outcome
from railsync.reporter.reporter import TestRailReporter


def _config(options=None, ini=None) -> Mock:
    options = {"testrail": True, "testrail_ledger": None, "browser": None, "browser_channel": None,
               **(options or {})}
    config = Mock()
    config.getoption.side_effect = lambda name, default=None: options.get(name, default)
    config.getini.return_value = ini or []
    del config.workerinput
    return config


def _report(when="call", outcome="passed", longrepr=None, user_properties=None, duration=0.25):
    return pytest.TestReport(
        nodeid="tests/test_login.py::test_login[chromium]",
        location=("tests/test_login.py", 10, "test_login[chromium]"),
        keywords={},
        outcome=outcome,
        longrepr=longrepr,
        when=when,
        duration=duration,
        user_properties=user_properties or [],
    )


def _session(items=(), exitstatus=0, distributed=False) -> Mock:
    session = Mock(items=list(items), exitstatus=exitstatus)
    session.config.pluginmanager.has_plugin.return_value = distributed
    return session


def _item(name="test_login", doc=None, case_ids=(), browser=None) -> Mock:
    def _test_fn():
        pass

    _test_fn.__doc__ = doc
    item = Mock()
    item.name = name
    item.obj = _test_fn
    item.iter_markers.return_value = [Mock(args=tuple(case_ids))] if case_ids else []
    if browser is None:
        item.callspec = None
    else:
        item.callspec.params = {"browser_name": browser}
    item.user_properties = []
    return item


class TestConfigurationLabels:
    """Tests for configuration_labels()."""

    def test_ini_option_wins(self):
        config = _config(options={"browser": ["firefox"]}, ini=["Chrome", "Edge"])
        assert configuration_labels(config) == ["Chrome", "Edge"]

    def test_playwright_browser_option(self):
        config = _config(options={"browser": ["chromium", "webkit"]})
        assert configuration_labels(config) == ["Chrome", "Safari"]

    def test_default(self):
        assert configuration_labels(_config()) == ["Chrome"]

    def test_browser_channel_replaces_chromium(self):
        config = _config(options={"browser": ["chromium", "firefox"], "browser_channel": "msedge"})
        assert configuration_labels(config) == ["Edge", "Firefox"]

    def test_ini_mapping_lines(self):
        config = _config(ini=["chromium=Chrome Stable", "firefox = Firefox ESR", "Edge"])
        assert configuration_labels(config) == ["Chrome Stable", "Firefox ESR", "Edge"]


class TestBrowserLabel:
    """Tests for browser_label()."""

    @pytest.mark.parametrize("browser,expected", [
        ("chromium", "Chrome"), ("firefox", "Firefox"), ("webkit", "Safari"),
        ("msedge", "Edge"), ("Chromium", "Chrome"), ("opera", "opera"),
    ])
    def test_default_names(self, browser, expected):
        assert browser_label(browser) == expected

    def test_explicit_mapping_wins(self):
        assert browser_label("chromium", {"chromium": "Chrome Stable"}) == "Chrome Stable"


class TestItemConfiguration:
    """Tests for item_configuration()."""

    def test_playwright_browser_maps_to_testrail_name(self):
        config = _config(ini=["Chrome"])
        assert item_configuration(config, _item(browser="chromium"), ["Chrome"]) == "Chrome"

    def test_ini_mapping_line(self):
        config = _config(ini=["chromium=Chrome Stable"])
        item = _item(browser="chromium")
        assert item_configuration(config, item, ["Chrome Stable"]) == "Chrome Stable"

    def test_browser_channel(self):
        config = _config(options={"browser_channel": "msedge"})
        assert item_configuration(config, _item(browser="chromium"), ["Chrome"]) == "Edge"

    def test_unparametrized_item_uses_first_label(self):
        assert item_configuration(_config(), _item(), ["Firefox", "Chrome"]) == "Firefox"


class TestItemTitle:
    """Tests for item_title()."""

    def test_first_docstring_line(self):
        item = _item(doc="Login works => 101 102\n\n    More details.")
        assert item_title(item) == "Login works => 101 102"

    def test_falls_back_to_name(self):
        assert item_title(_item(name="test_checkout", doc=None)) == "test_checkout"


class TestReportOutcome:
    """Tests for report_outcome()."""

    def test_call_passed(self):
        assert report_outcome(_report()) is Outcome.PASSED

    def test_call_failed(self):
        assert report_outcome(_report(outcome="failed", longrepr="AssertionError: nope")) is Outcome.FAILED

    def test_call_timeout(self):
        report = _report(outcome="failed", longrepr="Failed: Timeout >30.0s")
        assert report_outcome(report) is Outcome.TIMED_OUT

    def test_setup_skip(self):
        report = _report(when="setup", outcome="skipped", longrepr=("file.py", 1, "Skipped: no browser"))
        assert report_outcome(report) is Outcome.SKIPPED

    def test_setup_error(self):
        assert report_outcome(_report(when="setup", outcome="failed", longrepr="fixture")) is Outcome.FAILED

    def test_setup_and_teardown_passes_are_ignored(self):
        assert report_outcome(_report(when="setup")) is None
        assert report_outcome(_report(when="teardown")) is None

    def test_teardown_error(self):
        report = _report(when="teardown", outcome="failed", longrepr="fixture cleanup failed")
        assert report_outcome(report) is Outcome.FAILED


class TestCollectionModifyItems:
    """Tests for the collection hook."""

    def test_annotates_items(self):
        item = _item(doc="Login => 7", case_ids=(101, 102), browser="firefox")
        pytest_plugin.pytest_collection_modifyitems(_config(ini=["chromium"]), [item])
        props = dict(item.user_properties)
        assert props["testrail_title"] == "Login => 7"
        assert props["testrail_annotations"] == [
            {"type": "testRailId", "description": "101"},
            {"type": "testRailId", "description": "102"},
        ]
        assert props["testrail_configuration"] == "Firefox"

    def test_unparametrized_item_uses_first_label(self):
        item = _item()
        pytest_plugin.pytest_collection_modifyitems(_config(ini=["Chrome Stable"]), [item])
        assert dict(item.user_properties)["testrail_configuration"] == "Chrome Stable"

    def test_disabled_leaves_items_alone(self):
        item = _item(case_ids=(1,))
        with patch("railsync.models.config.dotenv_values", return_value={}):
            pytest_plugin.pytest_collection_modifyitems(_config(options={"testrail": False}), [item])
        assert item.user_properties == []


class TestPluginConfigure:
    """Tests for pytest_configure()."""

    def test_registers_reporter_when_enabled(self, env, monkeypatch):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        config = _config(ini=["Chrome"])
        with patch("railsync.models.config.load_dotenv"):
            pytest_plugin.pytest_configure(config)
        config.pluginmanager.register.assert_called_once()
        plugin, name = config.pluginmanager.register.call_args.args
        assert isinstance(plugin, TestRailPlugin)
        assert name == PLUGIN_NAME
        assert plugin.labels == ["Chrome"]

    def test_missing_credentials_are_a_usage_error(self, monkeypatch):
        for var in ("TESTRAIL_HOST", "TESTRAIL_USERNAME", "TESTRAIL_PASSWORD"):
            monkeypatch.delenv(var, raising=False)
        with patch("railsync.models.config.load_dotenv"):
            with pytest.raises(pytest.UsageError, match="TESTRAIL_HOST"):
                pytest_plugin.pytest_configure(_config())

    def test_disabled_registers_nothing(self):
        config = _config(options={"testrail": False})
        with patch("railsync.models.config.dotenv_values", return_value={}):
            pytest_plugin.pytest_configure(config)
        config.pluginmanager.register.assert_not_called()

    def test_xdist_worker_registers_nothing(self):
        config = _config()
        config.workerinput = {"workerid": "gw0"}
        pytest_plugin.pytest_configure(config)
        config.pluginmanager.register.assert_not_called()


class TestTestRailPlugin:
    """Tests for the session hooks."""

    def _plugin(self, sync_config) -> tuple[TestRailPlugin, Mock]:
        reporter = Mock()
        return TestRailPlugin(sync_config, ["Chrome"], reporter=reporter), reporter

    def test_runtestloop_begins_run(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        session = _session(items=[1, 2, 3])
        plugin.pytest_runtestloop(session)
        reporter.on_run_begin.assert_called_once_with(3, ["Chrome"])

    def test_runtestloop_under_xdist_has_no_local_count(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        plugin.pytest_runtestloop(_session(distributed=True))
        reporter.on_run_begin.assert_called_once_with(None, ["Chrome"])

    def test_xdist_collection_count_logged_once(self, sync_config, caplog):
        plugin, _ = self._plugin(sync_config)
        with caplog.at_level(logging.INFO):
            plugin.pytest_xdist_node_collection_finished(Mock(), ["a", "b", "c"])
            plugin.pytest_xdist_node_collection_finished(Mock(), ["a", "b", "c"])
        assert caplog.text.count("collected 3 tests") == 1

    def test_teardown_failure_overrides_passing_call(self, client, sync_config, chrome_firefox_plan):
        reporter = TestRailReporter(sync_config, client=client, abort=Mock())
        plugin = TestRailPlugin(sync_config, ["Chrome"], reporter=reporter)
        props = [
            ("testrail_title", "Login"),
            ("testrail_annotations", [{"type": "testRailId", "description": "5"}]),
            ("testrail_configuration", "Chrome"),
        ]
        client.add_plan.return_value = chrome_firefox_plan

        plugin.pytest_runtestloop(_session())
        plugin.pytest_runtest_logreport(_report(user_properties=props))
        plugin.pytest_runtest_logreport(
            _report(when="teardown", outcome="failed", longrepr="cleanup failed", user_properties=props)
        )
        plugin.pytest_sessionfinish(_session(), 0)

        batch = client.add_results_for_cases.call_args.args[1]
        assert [(r.case_id, r.status_id) for r in batch] == [(5, 5)]

    def test_logreport_forwards_event(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        props = [
            ("testrail_title", "Login"),
            ("testrail_annotations", [{"type": "testRailId", "description": "5"}]),
            ("testrail_configuration", "chromium"),
        ]
        plugin.pytest_runtest_logreport(_report(user_properties=props))

        event = reporter.on_test_end.call_args.args[0]
        assert event.title == "Login"
        assert event.outcome is Outcome.PASSED
        assert event.annotations[0].description == "5"
        assert event.duration_ms == 250
        assert event.configuration == "chromium"
        assert event.location.endswith("test_login[chromium]")

    def test_logreport_ignores_unannotated_and_inconclusive(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        plugin.pytest_runtest_logreport(_report())
        plugin.pytest_runtest_logreport(_report(when="teardown", user_properties=[("testrail_title", "x")]))
        reporter.on_test_end.assert_not_called()

    def test_abort_before_tests_exits_pytest(self, sync_config):
        plugin, _ = self._plugin(sync_config)
        with pytest.raises(pytest.exit.Exception):
            plugin.reporter.abort(1)

    def test_abort_after_tests_sets_exit_status(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        session = _session(exitstatus=0)
        plugin.pytest_runtestloop(session)
        reporter.on_run_end.side_effect = lambda status: plugin.reporter.abort(1)

        plugin.pytest_sessionfinish(session, 0)

        reporter.on_run_end.assert_called_once_with("passed")
        assert session.exitstatus == 1

    def test_sessionfinish_reports_failed_status(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        session = _session(exitstatus=1)
        plugin.pytest_runtestloop(session)
        plugin.pytest_sessionfinish(session, pytest.ExitCode.TESTS_FAILED)
        reporter.on_run_end.assert_called_once_with("failed")
        assert session.exitstatus == 1

    def test_sessionfinish_skipped_when_run_never_began(self, sync_config):
        plugin, reporter = self._plugin(sync_config)
        plugin.pytest_sessionfinish(Mock(), 2)
        reporter.on_run_end.assert_not_called()
