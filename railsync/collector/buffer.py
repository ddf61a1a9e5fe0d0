"""In-memory buffer of case results collected during a test run."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from railsync.models.results import CaseResult

logger = logging.getLogger(__name__)


def deduplicate(results: Iterable[CaseResult]) -> list[CaseResult]:
    """Keep one result per case id; the last recorded one wins."""
    by_case: dict[int, CaseResult] = {}
    for result in results:
        by_case.pop(result.case_id, None)
        by_case[result.case_id] = result
    return list(by_case.values())


class ResultBuffer:
    """Append-only collection of (configuration label, CaseResult) pairs.

    ``record`` may be called from several worker threads. Once the run has
    ended the buffer is closed and becomes read-only.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[str, CaseResult]] = []
        self._lock = threading.Lock()
        self._closed = False

    def record(self, result: CaseResult, label: str) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Result buffer is closed; the run has already ended")
            self._entries.append((label, result))

    def extend(self, results: Iterable[CaseResult], label: str) -> None:
        results = list(results)
        with self._lock:
            if self._closed:
                raise RuntimeError("Result buffer is closed; the run has already ended")
            self._entries.extend((label, r) for r in results)

    def close(self) -> None:
        with self._lock:
            self._closed = True
        logger.debug("Result buffer closed with %d results", len(self._entries))

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _snapshot(self) -> list[tuple[str, CaseResult]]:
        with self._lock:
            return list(self._entries)

    def distinct_case_ids(self, label: str | None = None) -> set[int]:
        """Case ids seen so far, optionally limited to one configuration."""
        return {
            result.case_id
            for entry_label, result in self._snapshot()
            if label is None or entry_label == label
        }

    def labels(self) -> list[str]:
        """Configuration labels in order of first appearance."""
        return list(dict.fromkeys(label for label, _ in self._snapshot()))

    def group_by_configuration(self) -> dict[str, list[CaseResult]]:
        groups: dict[str, list[CaseResult]] = {}
        for label, result in self._snapshot():
            groups.setdefault(label, []).append(result)
        return groups
