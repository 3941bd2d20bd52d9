# Copyright (c) Syntropy Systems
"""Per-run outcome tracking."""

from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING

from featsweep.models.report import RunSummary

if TYPE_CHECKING:
    from featsweep.combinations import Combination
    from featsweep.models.report import RunOutcome


class RunTracker:
    """Records one outcome per attempted combination, in insertion order.

    ``record`` is serialized with a lock so several dispatch threads may
    report into the same tracker.
    """

    _outcomes: list[RunOutcome]
    _seen: set[Combination]
    _lock: Lock

    def __init__(self) -> None:
        self._outcomes = []
        self._seen = set()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._outcomes)

    def record(self, combination: Combination, outcome: RunOutcome) -> None:
        """Append the outcome for ``combination``.

        Raises:
            ValueError: ``combination`` was already recorded, or does not
                match ``outcome.combination``.

        """
        if tuple(outcome.combination) != tuple(combination):
            msg = f"Outcome is for {outcome.combination!r}, not {combination!r}"
            raise ValueError(msg)
        with self._lock:
            if combination in self._seen:
                msg = f"Combination {combination!r} already recorded"
                raise ValueError(msg)
            self._seen.add(combination)
            self._outcomes.append(outcome)

    @property
    def outcomes(self) -> list[RunOutcome]:
        """Snapshot of recorded outcomes."""
        with self._lock:
            return list(self._outcomes)

    def summary(self) -> RunSummary:
        """Aggregate counts and the failing combinations, in order."""
        summary = RunSummary()
        with self._lock:
            for outcome in self._outcomes:
                summary.attempted += 1
                if outcome.classification == "succeeded":
                    summary.succeeded += 1
                elif outcome.classification == "skipped":
                    summary.skipped += 1
                else:
                    summary.failed += 1
                    summary.failing.append(outcome.combination)
        return summary
