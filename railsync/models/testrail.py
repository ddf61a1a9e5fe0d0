"""TestRail entities as returned by the API (unknown fields are ignored)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class Project(BaseModel):
    id: int
    name: str = ""
    suite_mode: Optional[int] = None  # 1 single suite, 2 baselines, 3 multiple suites
    url: Optional[str] = None


class Suite(BaseModel):
    id: int
    name: str = ""
    project_id: Optional[int] = None


class ConfigItem(BaseModel):
    id: int
    name: str
    group_id: Optional[int] = None


class ConfigGroup(BaseModel):
    id: int
    name: str
    project_id: Optional[int] = None
    configs: list[ConfigItem] = Field(default_factory=list)


class Run(BaseModel):
    id: int
    name: str = ""
    suite_id: Optional[int] = None
    plan_id: Optional[int] = None
    entry_id: Optional[str] = None
    config: Optional[str] = None  # e.g. "Chrome" or "Chrome, Linux"
    config_ids: list[int] = Field(default_factory=list)
    include_all: bool = True
    is_completed: bool = False
    url: Optional[str] = None


class PlanEntry(BaseModel):
    id: str = ""
    name: str = ""
    suite_id: Optional[int] = None
    runs: list[Run] = Field(default_factory=list)


class Plan(BaseModel):
    id: int
    name: str = ""
    description: Optional[str] = None
    is_completed: bool = False
    url: Optional[str] = None
    entries: list[PlanEntry] = Field(default_factory=list)

    def runs(self) -> list[Run]:
        """All runs of the plan, in entry order."""
        return [run for entry in self.entries for run in entry.runs]
