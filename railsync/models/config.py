"""Configuration model for the TestRail synchronization."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Literal, Mapping, Optional

from dotenv import dotenv_values, find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from railsync.errors import ConfigurationError

DEFAULT_PROJECT_ID = 59
DEFAULT_SUITE_ID = 849
DEFAULT_SUITE_NAME = "Regression suite"
DEFAULT_CONFIG_GROUP = "web browsers"
DEFAULT_RUN_NAME = "Test Run generated from Playwright Framework"

_TRUTHY = {"1", "true", "yes", "on"}

# Environment variable -> (field, kind)
_OPTIONAL_VARS: dict[str, tuple[str, str]] = {
    "TESTRAIL_PROJECT_ID": ("project_id", "int"),
    "TESTRAIL_PLAN_ID": ("plan_id", "int"),
    "TESTRAIL_SUITE_NAME": ("suite_name", "str"),
    "TESTRAIL_SUITE_ID": ("default_suite_id", "int"),
    "TESTRAIL_CONFIG_GROUP": ("config_group", "str"),
    "TESTRAIL_MODE": ("mode", "str"),
    "TESTRAIL_INCLUDE_ALL": ("include_all", "bool"),
    "TESTRAIL_SINGLE_SUITE": ("single_suite", "bool"),
    "TESTRAIL_CLOSE": ("close_on_finish", "bool"),
    "TESTRAIL_RUN_NAME": ("run_name", "str"),
    "TESTRAIL_TIMEOUT": ("timeout_seconds", "float"),
    "E2E_TESTS": ("test_scope", "str"),
    "FL_ENV": ("environment", "str"),
    "BRANCH_NAME": ("branch", "str"),
    "TESTRAIL_REPORT": ("enabled", "bool"),
}

_REQUIRED_VARS: dict[str, tuple[str, str]] = {
    "TESTRAIL_HOST": ("host", "TestRail host"),
    "TESTRAIL_USERNAME": ("username", "TestRail username"),
    "TESTRAIL_PASSWORD": ("password", "TestRail Password/ApiKey"),
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


class SyncConfig(BaseModel):
    """Immutable settings shared by every synchronization component."""

    model_config = ConfigDict(frozen=True)

    # Connection
    host: str
    username: str
    password: str
    timeout_seconds: float = 60.0

    # TestRail layout
    project_id: int = DEFAULT_PROJECT_ID
    plan_id: Optional[int] = None
    suite_name: str = DEFAULT_SUITE_NAME
    default_suite_id: int = DEFAULT_SUITE_ID
    config_group: str = DEFAULT_CONFIG_GROUP

    # Policies
    mode: Literal["plan", "run"] = "plan"
    include_all: bool = True
    single_suite: bool = False
    close_on_finish: bool = False
    run_name: str = DEFAULT_RUN_NAME

    # Plan naming
    test_scope: str = ""
    environment: str = ""
    branch: str = ""

    enabled: bool = False

    @field_validator("host")
    @classmethod
    def normalize_host(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and "://" not in v:
            v = f"https://{v}"
        return v

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        dotenv_path: str | Path | None = None,
    ) -> "SyncConfig":
        """Build the configuration from environment variables.

        When ``env`` is omitted, a ``.env`` file is loaded first (real
        environment variables take precedence) and ``os.environ`` is read.
        """
        if env is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            env = os.environ

        values: dict[str, object] = {}
        for var, (field, label) in _REQUIRED_VARS.items():
            raw = env.get(var, "").strip()
            if not raw:
                raise ConfigurationError(
                    f"{label} has not been defined in {var} environment variable."
                )
            values[field] = raw

        for var, (field, kind) in _OPTIONAL_VARS.items():
            raw = env.get(var)
            if raw is None or not raw.strip():
                continue
            raw = raw.strip()
            if kind == "bool":
                values[field] = _parse_bool(raw)
            elif kind in ("int", "float"):
                try:
                    values[field] = int(raw) if kind == "int" else float(raw)
                except ValueError:
                    raise ConfigurationError(
                        f"{var} must be a number, got '{raw}'"
                    ) from None
            else:
                values[field] = raw

        mode = values.get("mode", "plan")
        if mode not in ("plan", "run"):
            raise ConfigurationError(
                f"TESTRAIL_MODE must be 'plan' or 'run', got '{mode}'"
            )
        return cls(**values)

    @staticmethod
    def is_enabled(env: Mapping[str, str] | None = None) -> bool:
        """Read only the integration toggle, without requiring credentials.

        A .env file is consulted but never loaded into os.environ.
        """
        if env is None:
            env = {**dotenv_values(find_dotenv(usecwd=True)), **os.environ}
        return _parse_bool(env.get("TESTRAIL_REPORT") or "")

    def plan_name(self, now: datetime | None = None) -> str:
        now = now or datetime.now()
        return (
            f"Generated on {now.strftime('%Y-%m-%d %H:%M:%S')} for "
            f"{self.test_scope} tests with {self.environment} backend"
        )

    def plan_description(self) -> str:
        return f"Branch: {self.branch}"
