"""Map execution outcomes to TestRail status ids."""

from __future__ import annotations

from railsync.errors import MappingError
from railsync.models.results import Outcome

# TestRail default statuses
PASSED = 1
SKIPPED = 3  # "Untested / Retest"
FAILED = 5


def map_outcome(outcome: Outcome | str) -> int:
    """Return the TestRail status id for an outcome.

    Raises MappingError for anything that is not a known outcome.
    """
    try:
        outcome = Outcome(outcome)
    except ValueError:
        raise MappingError(f"Unknown test outcome: {outcome!r}") from None

    if outcome is Outcome.PASSED:
        return PASSED
    if outcome in (Outcome.FAILED, Outcome.TIMED_OUT):
        return FAILED
    if outcome is Outcome.SKIPPED:
        return SKIPPED
    raise MappingError(f"No TestRail status for outcome {outcome.value!r}")
