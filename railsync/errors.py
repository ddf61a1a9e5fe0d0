"""Exception hierarchy for TestRail synchronization."""

from __future__ import annotations


class RailSyncError(Exception):
    """Base class for all synchronization failures."""


class ConfigurationError(RailSyncError):
    """A required environment value is missing or malformed."""


class ValidationError(RailSyncError):
    """The TestRail project, suite or plan does not match what the run expects."""


class MappingError(RailSyncError, ValueError):
    """An execution outcome has no TestRail status."""


class ResolutionError(RailSyncError):
    """No run inside the plan matches a configuration label."""

    def __init__(self, label: str, plan_id: int | None = None):
        self.label = label
        self.plan_id = plan_id
        super().__init__(f"No run for configuration '{label}' in plan {plan_id}")


class SubmissionError(RailSyncError):
    """TestRail rejected a create, submit or close call."""

    def __init__(self, message: str, label: str | None = None, run_id: int | None = None):
        self.label = label
        self.run_id = run_id
        super().__init__(message)


class TestRailAPIError(RailSyncError):
    """Transport or HTTP-level failure talking to TestRail."""

    __test__ = False  # keep pytest from collecting this as a test class

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
