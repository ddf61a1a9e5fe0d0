"""JSON ledger of buffered results, for replaying a failed synchronization."""

from __future__ import annotations

import json
import time
from pathlib import Path

from railsync.collector.buffer import ResultBuffer
from railsync.models.results import CaseResult


def write_ledger(buffer: ResultBuffer, output_path: Path, overall_status: str = "") -> None:
    """Write the buffered results, grouped by configuration, as JSON."""
    groups = buffer.group_by_configuration()
    report = {
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "status": overall_status,
        "total": sum(len(results) for results in groups.values()),
        "configurations": {
            label: [r.model_dump() for r in results]
            for label, results in groups.items()
        },
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2)


def read_ledger(path: Path) -> ResultBuffer:
    """Load a ledger back into a closed ResultBuffer."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ledger not found: {path}")
    with open(path) as f:
        data = json.load(f)

    buffer = ResultBuffer()
    for label, results in data.get("configurations", {}).items():
        buffer.extend((CaseResult.model_validate(r) for r in results), label)
    buffer.close()
    return buffer
