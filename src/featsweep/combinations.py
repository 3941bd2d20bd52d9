# Copyright (c) Syntropy Systems
"""Feature combination enumeration."""

from __future__ import annotations

import heapq
import itertools
import math
from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from typing_extensions import TypeAlias

from featsweep.errors import InvalidDepth

if TYPE_CHECKING:
    from collections.abc import Iterator

    from featsweep.catalog import FeatureCatalog

Combination: TypeAlias = tuple[str, ...]


@dataclass
class EnumerationStats:
    """Counters describing what happened to every candidate subset.

    After a full pass ``candidates`` equals
    ``yielded + conflicting + duplicate + over_depth + excluded``.
    """

    candidates: int = 0
    yielded: int = 0
    conflicting: int = 0
    duplicate: int = 0
    over_depth: int = 0
    excluded: int = 0

    @property
    def filtered(self) -> int:
        """Candidates that were never yielded."""
        return self.conflicting + self.duplicate + self.over_depth + self.excluded


def bounded_powerset_size(size: int, max_depth: int) -> int:
    """Number of subsets of ``size`` elements with at most ``max_depth`` members."""
    return sum(math.comb(size, k) for k in range(min(size, max_depth) + 1))


def validate_depth(max_depth: object) -> int:
    """Return ``max_depth`` if it is a non-negative integer."""
    if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
        raise InvalidDepth(max_depth)
    return max_depth


class Enumeration:
    """Restartable, lazy sequence of feasible combinations.

    Combinations are produced ascending by size, then lexicographically.
    A candidate missing a required feature is completed with it and emitted
    in the pass for its completed size; completion never goes past
    ``max_depth``. Each call to ``iter()`` starts over and resets ``stats``.
    """

    catalog: FeatureCatalog
    max_depth: int
    exclude_empty: bool
    stats: EnumerationStats

    def __init__(
        self,
        catalog: FeatureCatalog,
        max_depth: int,
        *,
        exclude_empty: bool = False,
    ) -> None:
        self.catalog = catalog
        self.max_depth = validate_depth(max_depth)
        self.exclude_empty = exclude_empty
        self.stats = EnumerationStats()

    def __iter__(self) -> Iterator[Combination]:
        self.stats = EnumerationStats()
        return self._generate(self.stats)

    @property
    def candidate_count(self) -> int:
        """Size of the depth-bounded powerset of the catalog."""
        return bounded_powerset_size(len(self.catalog), self.max_depth)

    def _generate(self, stats: EnumerationStats) -> Iterator[Combination]:
        depth = min(self.max_depth, len(self.catalog))
        completed: dict[int, Counter[Combination]] = {}

        for size in range(depth + 1):
            native = self._closed_candidates(size, completed, stats)
            # weight = number of candidates that completed to the combination
            pending = sorted(completed.pop(size, Counter()).items())

            last: Combination | None = None
            for combo, weight in heapq.merge(native, pending):
                if combo == last:
                    stats.duplicate += weight
                    continue
                last = combo
                if weight:
                    stats.duplicate += weight - 1
                stats.yielded += 1
                yield combo

    def _closed_candidates(
        self,
        size: int,
        completed: dict[int, Counter[Combination]],
        stats: EnumerationStats,
    ) -> Iterator[tuple[Combination, int]]:
        """Yield ``(combination, 0)`` for candidates already closed under requires.

        Candidates that need completion are parked in ``completed`` under
        their resulting size.
        """
        for candidate in itertools.combinations(self.catalog.names, size):
            stats.candidates += 1
            if not candidate and self.exclude_empty:
                stats.excluded += 1
                continue

            closure = self.catalog.complete(candidate)
            if not self.catalog.is_conflict_free(closure):
                stats.conflicting += 1
                continue
            if len(closure) > self.max_depth:
                stats.over_depth += 1
                continue
            if len(closure) == size:
                yield candidate, 0
                continue

            combo = tuple(sorted(closure))
            completed.setdefault(len(combo), Counter())[combo] += 1


def enumerate_combinations(
    catalog: FeatureCatalog,
    max_depth: int,
    *,
    exclude_empty: bool = False,
) -> Enumeration:
    """Return the restartable sequence of combinations to exercise.

    Raises:
        InvalidDepth: ``max_depth`` is negative or not an integer.

    """
    return Enumeration(catalog, max_depth, exclude_empty=exclude_empty)
