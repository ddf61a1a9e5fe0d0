"""TestRail API v2 client wrapper for the synchronization."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Optional

import requests

from railsync.errors import TestRailAPIError
from railsync.models.config import SyncConfig
from railsync.models.results import CaseResult
from railsync.models.testrail import ConfigGroup, Plan, Project, Run, Suite

logger = logging.getLogger(__name__)


class TestRailClient:
    """Thin wrapper around the TestRail REST API.

    Every call is a single request: failures are raised as TestRailAPIError
    and never retried.
    """

    __test__ = False

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = f"{host.rstrip('/')}/index.php?/api/v2/"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        self._call_count = 0

    @classmethod
    def from_config(cls, config: SyncConfig, session: Optional[requests.Session] = None) -> "TestRailClient":
        return cls(
            host=config.host,
            username=config.username,
            password=config.password,
            timeout=config.timeout_seconds,
            session=session,
        )

    @property
    def call_count(self) -> int:
        return self._call_count

    def _request(self, method: str, endpoint: str, payload: Optional[dict] = None) -> Any:
        self._call_count += 1
        url = self.base_url + endpoint
        logger.debug("TestRail %s %s (call #%d)", method, endpoint, self._call_count)

        call_start = time.time()
        try:
            resp = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("TestRail request %s failed: %s", endpoint, e)
            raise TestRailAPIError(f"{method} {endpoint} failed: {e}") from e
        logger.debug("TestRail %s answered %s in %.2fs",
                     endpoint, resp.status_code, time.time() - call_start)

        if resp.status_code >= 400:
            detail = ""
            try:
                body = resp.json()
                if isinstance(body, dict):
                    detail = body.get("error", "")
            except ValueError:
                detail = resp.text[:200]
            message = f"{method} {endpoint} returned {resp.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise TestRailAPIError(message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise TestRailAPIError(
                f"{method} {endpoint} returned invalid JSON: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from e

    def _get(self, endpoint: str) -> Any:
        return self._request("GET", endpoint)

    def _post(self, endpoint: str, payload: Optional[dict] = None) -> Any:
        return self._request("POST", endpoint, payload or {})

    @staticmethod
    def _unwrap_list(data: Any, key: str) -> list:
        # Newer TestRail versions paginate bulk endpoints as {"<key>": [...]}
        if isinstance(data, dict):
            return data.get(key, []) or []
        if isinstance(data, list):
            return data
        raise TestRailAPIError(f"Unexpected response shape for {key}: {type(data).__name__}")

    def get_project(self, project_id: int) -> Project:
        return Project.model_validate(self._get(f"get_project/{project_id}"))

    def get_suites(self, project_id: int) -> list[Suite]:
        data = self._unwrap_list(self._get(f"get_suites/{project_id}"), "suites")
        return [Suite.model_validate(s) for s in data]

    def get_configs(self, project_id: int) -> list[ConfigGroup]:
        data = self._unwrap_list(self._get(f"get_configs/{project_id}"), "configs")
        return [ConfigGroup.model_validate(g) for g in data]

    def get_plan(self, plan_id: int) -> Plan:
        return Plan.model_validate(self._get(f"get_plan/{plan_id}"))

    def add_plan(self, project_id: int, payload: dict[str, Any]) -> Plan:
        return Plan.model_validate(self._post(f"add_plan/{project_id}", payload))

    def close_plan(self, plan_id: int) -> Plan:
        return Plan.model_validate(self._post(f"close_plan/{plan_id}"))

    def add_run(self, project_id: int, payload: dict[str, Any]) -> Run:
        return Run.model_validate(self._post(f"add_run/{project_id}", payload))

    def close_run(self, run_id: int) -> Run:
        return Run.model_validate(self._post(f"close_run/{run_id}"))

    def add_results_for_cases(self, run_id: int, results: Iterable[CaseResult]) -> list[dict[str, Any]]:
        payload = {"results": [r.to_payload() for r in results]}
        data = self._post(f"add_results_for_cases/{run_id}", payload)
        return data if isinstance(data, list) else []
