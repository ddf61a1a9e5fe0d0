"""Submission orchestrator: plan -> runs -> results -> optional close."""

from __future__ import annotations

import logging
import time
from typing import Optional

from railsync.collector.buffer import ResultBuffer, deduplicate
from railsync.errors import ResolutionError, SubmissionError, TestRailAPIError
from railsync.models.config import SyncConfig
from railsync.models.results import CaseResult, SyncSummary
from railsync.models.testrail import Plan, Run
from railsync.testrail.client import TestRailClient

from .resolver import PlanResolver

logger = logging.getLogger(__name__)


class SubmissionOrchestrator:
    """Pushes the buffered results of one test run into TestRail.

    Runs are handled one at a time. A failed TestRail call aborts the
    remaining sequence with SubmissionError; runs submitted before the
    failure keep their results. A configuration without a matching run is
    skipped with a warning.
    """

    def __init__(
        self,
        client: TestRailClient,
        config: SyncConfig,
        resolver: Optional[PlanResolver] = None,
    ):
        self.client = client
        self.config = config
        self.resolver = resolver or PlanResolver(client, config)

    def synchronize(
        self,
        buffer: ResultBuffer,
        plan: Optional[Plan] = None,
        configurations: Optional[list[str]] = None,
    ) -> SyncSummary:
        """Submit the buffered results, one batch per configuration.

        A new plan (or set of runs) gets one run for every entry of
        ``configurations`` plus every other label that has results.
        """
        start = time.time()
        groups = {label: results for label, results in buffer.group_by_configuration().items() if results}
        summary = SyncSummary()
        if not groups:
            logger.info("No TestRail case results were recorded; nothing to synchronize")
            return summary

        labels = list(groups)
        targets = list(dict.fromkeys([*(configurations or []), *labels]))
        case_ids_by_label = {label: buffer.distinct_case_ids(label) for label in targets}
        logger.info("Synchronizing %d results for %d configurations: %s",
                    len(buffer), len(labels), ", ".join(labels))

        # Step 1: plan (or standalone runs)
        runs = self._resolve_runs(targets, case_ids_by_label, plan, summary)

        # Step 2: one batch per configuration with results
        for label in labels:
            run = runs.get(label)
            if run is None:
                summary.skipped.append(label)
                continue
            summary.run_ids[label] = run.id
            summary.submitted[label] = self._submit(label, run, groups[label])

        # Step 3: finalize
        if self.config.close_on_finish and (runs or summary.plan_id is not None):
            self._close(summary, runs)

        if summary.skipped:
            logger.warning("Results for %d configurations were not submitted: %s",
                           len(summary.skipped), ", ".join(summary.skipped))
        logger.info("TestRail synchronization complete: %d results in %d runs (%.1fs)",
                    summary.total_submitted, len(summary.submitted), time.time() - start)
        return summary

    def _resolve_runs(
        self,
        labels: list[str],
        case_ids_by_label: dict[str, set[int]],
        plan: Optional[Plan],
        summary: SyncSummary,
    ) -> dict[str, Run]:
        # An attached plan takes precedence over the mode
        if plan is None and self.config.mode == "run":
            try:
                return self.resolver.create_runs(labels, case_ids_by_label)
            except TestRailAPIError as e:
                raise SubmissionError(f"Could not create TestRail runs: {e}") from e

        if plan is None:
            try:
                plan = self.resolver.create_plan(labels, case_ids_by_label)
            except TestRailAPIError as e:
                raise SubmissionError(f"Could not create TestRail plan: {e}") from e
            if plan is None:
                return {}
        summary.plan_id = plan.id
        summary.plan_url = plan.url

        runs = {}
        for label in labels:
            try:
                runs[label] = self.resolver.find_run(plan, label)
            except ResolutionError as e:
                if case_ids_by_label.get(label):
                    logger.warning("%s; its results are dropped", e)
                else:
                    logger.debug("%s", e)
        return runs

    def _submit(self, label: str, run: Run, results: list[CaseResult]) -> int:
        batch = deduplicate(results)
        if len(batch) < len(results):
            logger.debug("%s: %d duplicate case results collapsed", label, len(results) - len(batch))
        try:
            self.client.add_results_for_cases(run.id, batch)
        except TestRailAPIError as e:
            raise SubmissionError(
                f"Submitting {len(batch)} results for '{label}' to run {run.id} failed: {e}",
                label=label, run_id=run.id,
            ) from e
        logger.info("Submitted %d results for %s to run %d", len(batch), label, run.id)
        return len(batch)

    def _close(self, summary: SyncSummary, runs: dict[str, Run]) -> None:
        try:
            if summary.plan_id is not None:
                self.client.close_plan(summary.plan_id)
                logger.info("Closed TestRail plan %d", summary.plan_id)
            else:
                for label, run in runs.items():
                    self.client.close_run(run.id)
                    logger.info("Closed TestRail run %d (%s)", run.id, label)
        except TestRailAPIError as e:
            raise SubmissionError(f"Closing TestRail runs failed: {e}") from e
        summary.closed = True
