"""Result data structures produced while a test run is collected."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Outcome(str, Enum):
    """Execution outcome as reported by the test engine."""

    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timedOut"
    SKIPPED = "skipped"


class Annotation(BaseModel):
    type: str
    description: Optional[str] = None


class TestEvent(BaseModel):
    """One finished test, as delivered by the execution engine."""

    __test__ = False

    title: str
    annotations: list[Annotation] = Field(default_factory=list)
    outcome: Outcome
    duration_ms: int = 0
    configuration: str = ""
    location: str = ""  # engine-specific id, e.g. a pytest node id


class CaseResult(BaseModel):
    """Outcome of one TestRail case, ready to be submitted."""

    model_config = ConfigDict(frozen=True)

    case_id: int = Field(ge=0)
    status_id: int
    comment: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {"case_id": self.case_id, "status_id": self.status_id, "comment": self.comment}


class SyncSummary(BaseModel):
    plan_id: Optional[int] = None
    plan_url: Optional[str] = None
    run_ids: dict[str, int] = Field(default_factory=dict)  # label -> run id
    submitted: dict[str, int] = Field(default_factory=dict)  # label -> results sent
    skipped: list[str] = Field(default_factory=list)  # labels without a run
    closed: bool = False

    @property
    def total_submitted(self) -> int:
        return sum(self.submitted.values())
