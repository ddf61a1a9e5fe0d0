"""Engine-facing observer that collects results and synchronizes them at run end."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from railsync.collector.buffer import ResultBuffer
from railsync.collector.case_ids import extract_case_ids
from railsync.collector.outcomes import map_outcome
from railsync.errors import RailSyncError, TestRailAPIError, ValidationError
from railsync.models.config import SyncConfig
from railsync.models.results import CaseResult, SyncSummary, TestEvent
from railsync.models.testrail import Plan
from railsync.sync.orchestrator import SubmissionOrchestrator
from railsync.sync.resolver import PlanResolver
from railsync.testrail.client import TestRailClient

from .ledger import write_ledger

logger = logging.getLogger(__name__)

EXIT_SYNC_FAILED = 1


class TestRailReporter:
    """Receives run lifecycle notifications and reports them to TestRail.

    ``abort`` is called with a non-zero exit code after a fatal error has
    been logged; it defaults to ``sys.exit``.
    """

    __test__ = False

    def __init__(
        self,
        config: SyncConfig,
        client: Optional[TestRailClient] = None,
        abort: Callable[[int], object] = sys.exit,
        ledger_path: Optional[Path] = None,
    ):
        self.config = config
        self.client = client or TestRailClient.from_config(config)
        self.abort = abort
        self.ledger_path = Path(ledger_path) if ledger_path else None
        self.resolver = PlanResolver(self.client, config)
        self.orchestrator = SubmissionOrchestrator(self.client, config, self.resolver)
        self.buffer = ResultBuffer()
        self.configurations: list[str] = []
        self.plan: Optional[Plan] = None
        self.failed = False

    def _fail(self, error: Exception) -> None:
        logger.error("TestRail synchronization aborted: %s", error)
        self.failed = True
        self.abort(EXIT_SYNC_FAILED)

    def on_run_begin(self, total_tests: Optional[int], configurations: list[str]) -> None:
        if total_tests is None:
            logger.info("Starting the run")
        else:
            logger.info("Starting the run with %d tests", total_tests)
        self.configurations = list(configurations)
        logger.debug("Execution configurations: %s", ", ".join(self.configurations))
        try:
            self.resolver.validate_project()
            if self.config.plan_id is not None:
                self.plan = self.resolver.attach(self.config.plan_id)
            elif self.config.mode == "plan":
                try:
                    self.resolver.browser_configs()
                except TestRailAPIError as e:
                    raise ValidationError(f"Could not load TestRail configurations: {e}") from e
        except RailSyncError as e:
            self._fail(e)

    def on_test_end(self, event: TestEvent) -> list[CaseResult]:
        """Record one CaseResult per case id the test refers to."""
        case_ids = extract_case_ids(event.title, event.annotations)
        if not case_ids:
            logger.debug("No TestRail case ids for %s", event.location or event.title)
            return []

        label = event.configuration or (self.configurations[0] if self.configurations else "")
        status_id = map_outcome(event.outcome)
        comment = f"Test: {event.title}; Configuration: {label}; Duration: {event.duration_ms}ms"
        results = [CaseResult(case_id=case_id, status_id=status_id, comment=comment)
                   for case_id in case_ids]
        self.buffer.extend(results, label)
        logger.debug("[%s] %s -> cases %s (%s)", event.outcome.value, event.title,
                     ", ".join(str(c) for c in case_ids), label)
        return results

    def on_run_end(self, overall_status: str) -> Optional[SyncSummary]:
        logger.info("Finished the run: %s", overall_status)
        self.buffer.close()
        if self.failed:
            logger.warning("Skipping TestRail synchronization after an earlier failure")
            return None

        if self.ledger_path:
            write_ledger(self.buffer, self.ledger_path, overall_status)
            logger.info("Result ledger: %s", self.ledger_path)

        try:
            return self.orchestrator.synchronize(
                self.buffer, plan=self.plan, configurations=self.configurations,
            )
        except RailSyncError as e:
            self._fail(e)
            return None
