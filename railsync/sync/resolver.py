"""Plan and run resolution: create or attach a plan, map labels to runs."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from railsync.errors import ResolutionError, TestRailAPIError, ValidationError
from railsync.models.config import SyncConfig
from railsync.models.testrail import ConfigItem, Plan, Project, Run
from railsync.testrail.client import TestRailClient

logger = logging.getLogger(__name__)


class PlanResolver:
    """Decides which TestRail plan and runs receive the buffered results."""

    def __init__(self, client: TestRailClient, config: SyncConfig):
        self.client = client
        self.config = config
        self._suite_id: Optional[int] = None
        self._browser_configs: Optional[list[ConfigItem]] = None
        self._browser_configs_loaded = False

    # ------------------------------------------------------------------
    # Begin-phase checks
    # ------------------------------------------------------------------

    def validate_project(self) -> Project:
        try:
            project = self.client.get_project(self.config.project_id)
        except TestRailAPIError as e:
            raise ValidationError(
                f"TestRail project {self.config.project_id} is not accessible: {e}"
            ) from e
        logger.info("Current TestRail Project is %s", project.name)

        if self.config.single_suite:
            try:
                suites = self.client.get_suites(self.config.project_id)
            except TestRailAPIError as e:
                raise ValidationError(f"Could not list suites: {e}") from e
            if len(suites) > 1:
                raise ValidationError(
                    "TestRail project is not configured as Single Repository (single Suite)"
                )
            logger.debug("TestRail Project is Single Repository.")
        return project

    def attach(self, plan_id: int) -> Plan:
        """Fetch an existing plan to report into."""
        try:
            plan = self.client.get_plan(plan_id)
        except TestRailAPIError as e:
            raise ValidationError(f"TestRail plan {plan_id} could not be fetched: {e}") from e
        logger.info("Using existing test plan %d (%s) with %d runs",
                    plan.id, plan.name, len(plan.runs()))
        return plan

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_suite_id(self) -> int:
        if self._suite_id is not None:
            return self._suite_id

        suites = self.client.get_suites(self.config.project_id)
        matching = [s for s in suites if s.name == self.config.suite_name]
        if not matching:
            logger.warning(
                "Suite '%s' not found in project %d, falling back to suite id %d",
                self.config.suite_name, self.config.project_id, self.config.default_suite_id,
            )
            self._suite_id = self.config.default_suite_id
        else:
            self._suite_id = matching[0].id
            logger.info("Suite ID: %d", self._suite_id)
        return self._suite_id

    def browser_configs(self) -> Optional[list[ConfigItem]]:
        """Items of the browser configuration group, or None if the project has none."""
        if self._browser_configs_loaded:
            return self._browser_configs

        group_name = self.config.config_group.lower()
        groups = self.client.get_configs(self.config.project_id)
        matching = [g for g in groups if group_name in g.name.lower()]
        self._browser_configs = matching[0].configs if matching else None
        self._browser_configs_loaded = True
        if self._browser_configs is None:
            logger.info("No '%s' configuration group in project %d",
                        self.config.config_group, self.config.project_id)
        else:
            logger.debug("Browser configurations: %s",
                         ", ".join(c.name for c in self._browser_configs))
        return self._browser_configs

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _scope(self, case_ids: Optional[set[int]]) -> dict:
        if self.config.include_all:
            return {"include_all": True}
        return {"include_all": False, "case_ids": sorted(case_ids or ())}

    def create_plan(
        self,
        labels: list[str],
        case_ids_by_label: Mapping[str, set[int]] | None = None,
    ) -> Optional[Plan]:
        """Create a plan with one run per configuration label.

        Returns None without calling TestRail when no label has a run to create.
        """
        case_ids_by_label = case_ids_by_label or {}
        suite_id = self.resolve_suite_id()
        items = self.browser_configs()

        entries: list[dict] = []
        if items is None:
            # No configuration group: one entry per label, named after it
            for label in labels:
                entries.append({
                    "suite_id": suite_id,
                    "name": label,
                    **self._scope(case_ids_by_label.get(label)),
                })
        else:
            by_name = {item.name.lower(): item for item in items}
            runs = []
            config_ids = []
            for label in labels:
                item = by_name.get(label.lower())
                if item is None:
                    logger.warning(
                        "Configuration '%s' has no item in TestRail group '%s'; "
                        "no run will be created for it", label, self.config.config_group,
                    )
                    continue
                config_ids.append(item.id)
                runs.append({"config_ids": [item.id], **self._scope(case_ids_by_label.get(label))})
            if runs:
                entry = {"suite_id": suite_id, "config_ids": config_ids, "runs": runs}
                if self.config.include_all:
                    entry["include_all"] = True
                else:
                    all_ids = set().union(*case_ids_by_label.values()) if case_ids_by_label else set()
                    entry.update({"include_all": False, "case_ids": sorted(all_ids)})
                entries.append(entry)

        if not entries:
            logger.warning("None of the configurations %s exist in TestRail; no plan was created",
                           ", ".join(labels))
            return None

        payload = {
            "name": self.config.plan_name(),
            "description": self.config.plan_description(),
            "entries": entries,
        }
        plan = self.client.add_plan(self.config.project_id, payload)
        logger.info("Created TestRail Test Plan id %d", plan.id)
        return plan

    def create_runs(
        self,
        labels: list[str],
        case_ids_by_label: Mapping[str, set[int]] | None = None,
    ) -> dict[str, Run]:
        """Create one standalone run per label, outside of any plan."""
        case_ids_by_label = case_ids_by_label or {}
        suite_id = self.resolve_suite_id()
        runs: dict[str, Run] = {}
        for label in labels:
            name = self.config.run_name if len(labels) == 1 else f"{self.config.run_name} ({label})"
            payload = {
                "suite_id": suite_id,
                "name": name,
                "description": self.config.plan_description(),
                **self._scope(case_ids_by_label.get(label)),
            }
            run = self.client.add_run(self.config.project_id, payload)
            logger.info("Created TestRail Test Run id %d for %s", run.id, label)
            runs[label] = run
        return runs

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    @staticmethod
    def find_run(plan: Plan, label: str) -> Run:
        """Run of the plan whose configuration (or name) matches the label.

        Comparison is case-insensitive. Raises ResolutionError when nothing matches.
        """
        wanted = label.strip().lower()
        for run in plan.runs():
            if run.config and run.config.strip().lower() == wanted:
                return run
        for entry in plan.entries:
            for run in entry.runs:
                if run.config:
                    continue
                if run.name.strip().lower() == wanted or entry.name.strip().lower() == wanted:
                    return run
        raise ResolutionError(label, plan.id)
