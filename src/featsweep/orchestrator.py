# Copyright (c) Syntropy Systems
"""Feature-powerset build orchestration."""
from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import TYPE_CHECKING

from featsweep.combinations import enumerate_combinations
from featsweep.errors import DispatchError
from featsweep.models.report import EnumerationCounts, RunOutcome, RunReport
from featsweep.tracker import RunTracker

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from featsweep.catalog import FeatureCatalog
    from featsweep.combinations import Combination, Enumeration
    from featsweep.runner import CommandRunner, RunnerResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 64 * 1024
DISPATCH_ERROR_EXIT_CODE = -1


class Policy(str, Enum):
    """What to do after a combination fails."""

    FAIL_FAST = "fail-fast"
    CONTINUE_ON_FAILURE = "continue"


def truncate_output(data: bytes, limit: int) -> tuple[str, bool]:
    """Decode ``data``, keeping at most its last ``limit`` bytes."""
    truncated = len(data) > limit
    if truncated:
        data = data[-limit:] if limit > 0 else b""
    return data.decode("utf-8", errors="replace"), truncated


def classify(
    combination: Combination,
    result: RunnerResult,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> RunOutcome:
    """Turn a runner result into an immutable outcome record."""
    if result.skipped:
        classification = "skipped"
    elif result.exit_code == 0:
        classification = "succeeded"
    else:
        classification = "failed"

    stdout, stdout_truncated = truncate_output(result.stdout, max_output_bytes)
    stderr, stderr_truncated = truncate_output(result.stderr, max_output_bytes)
    stdout_truncated = stdout_truncated or result.stdout_truncated
    stderr_truncated = stderr_truncated or result.stderr_truncated
    return RunOutcome(
        combination=combination,
        classification=classification,
        exit_code=result.exit_code,
        stdout=stdout,
        stderr=stderr,
        stdout_truncated=stdout_truncated,
        stderr_truncated=stderr_truncated,
        duration=result.duration,
        failed_step=result.failed_step if classification != "succeeded" else None,
    )


def dispatch(
    combination: Combination,
    runner: CommandRunner,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> RunOutcome:
    """Run one combination; launch failures become a failed outcome."""
    logger.debug("Dispatching %s", combination or "(no features)")
    started = time.monotonic()
    try:
        result = runner.execute(combination)
    except DispatchError as e:
        logger.info("Could not dispatch %s: %s", combination, e)
        return RunOutcome(
            combination=combination,
            classification="failed",
            exit_code=DISPATCH_ERROR_EXIT_CODE,
            stderr=str(e),
            duration=time.monotonic() - started,
            error=str(e),
        )

    outcome = classify(combination, result, max_output_bytes)
    if outcome.classification == "failed":
        logger.info(
            "Combination %s failed with exit code %d",
            outcome.label,
            outcome.exit_code,
        )
    return outcome


class Orchestrator:
    """Drives one pass over the enumerated combinations.

    Holds no state beyond the run it was created for.
    """

    enumeration: Enumeration
    policy: Policy
    runner: CommandRunner
    jobs: int
    max_output_bytes: int
    on_outcome: Callable[[RunOutcome], None] | None
    tracker: RunTracker
    halted: bool

    def __init__(
        self,
        enumeration: Enumeration,
        policy: Policy,
        runner: CommandRunner,
        *,
        jobs: int = 1,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        on_outcome: Callable[[RunOutcome], None] | None = None,
    ) -> None:
        if jobs < 1:
            msg = f"jobs must be >= 1, got {jobs}"
            raise ValueError(msg)
        self.enumeration = enumeration
        self.policy = Policy(policy)
        self.runner = runner
        self.jobs = jobs
        self.max_output_bytes = max_output_bytes
        self.on_outcome = on_outcome
        self.tracker = RunTracker()
        self.halted = False

    def _record(self, combination: Combination, outcome: RunOutcome) -> None:
        self.tracker.record(combination, outcome)
        if self.on_outcome is not None:
            self.on_outcome(outcome)

    def run(self) -> RunReport:
        """Dispatch every combination (or until fail-fast halts) and report."""
        combinations = iter(self.enumeration)
        if self.jobs == 1:
            self._run_sequential(combinations)
        else:
            self._run_parallel(combinations)

        if self.halted:
            logger.info("Fail-fast: halted after %d combination(s)", len(self.tracker))

        stats = self.enumeration.stats
        return RunReport(
            policy=self.policy.value,
            max_depth=self.enumeration.max_depth,
            jobs=self.jobs,
            halted=self.halted,
            outcomes=self.tracker.outcomes,
            summary=self.tracker.summary(),
            enumeration=EnumerationCounts(
                candidates=stats.candidates,
                yielded=stats.yielded,
                conflicting=stats.conflicting,
                duplicate=stats.duplicate,
                over_depth=stats.over_depth,
                excluded=stats.excluded,
            ),
        )

    def _should_halt(self, outcome: RunOutcome) -> bool:
        return self.policy is Policy.FAIL_FAST and outcome.classification == "failed"

    def _run_sequential(self, combinations: Iterator[Combination]) -> None:
        for combination in combinations:
            outcome = dispatch(combination, self.runner, self.max_output_bytes)
            self._record(combination, outcome)
            if self._should_halt(outcome):
                self.halted = True
                return

    def _run_parallel(self, combinations: Iterator[Combination]) -> None:
        """Dispatch up to ``jobs`` combinations at once.

        ``running`` holds the dispatches still executing and bounds the pool;
        ``ordered`` holds every unrecorded dispatch in enumeration order, so
        a finished dispatch is buffered there until all earlier ones are
        recorded. Under fail-fast, no new dispatch starts once any finished
        dispatch failed; those already running are allowed to finish.
        """
        running: set[Future[RunOutcome]] = set()
        ordered: deque[tuple[Combination, Future[RunOutcome]]] = deque()
        stop = False

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            while True:
                while not stop and len(running) < self.jobs:
                    combination = next(combinations, None)
                    if combination is None:
                        stop = True
                        break
                    future = pool.submit(
                        dispatch, combination, self.runner, self.max_output_bytes
                    )
                    running.add(future)
                    ordered.append((combination, future))

                if not running:
                    break

                done, running = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    if self._should_halt(future.result()):
                        stop = True
                        self.halted = True

                while ordered and ordered[0][1].done():
                    combination, future = ordered.popleft()
                    self._record(combination, future.result())


def run(
    catalog: FeatureCatalog,
    max_depth: int,
    policy: Policy | str,
    runner: CommandRunner,
    *,
    jobs: int = 1,
    exclude_empty: bool = False,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    on_outcome: Callable[[RunOutcome], None] | None = None,
) -> RunReport:
    """Exercise every feasible combination of ``catalog`` up to ``max_depth``.

    Args:
        catalog: Validated feature catalog.
        max_depth: Largest combination size to dispatch.
        policy: ``Policy.FAIL_FAST`` or ``Policy.CONTINUE_ON_FAILURE``.
        runner: Executes the build/test command for one combination.
        jobs: Number of combinations dispatched concurrently.
        exclude_empty: Skip the baseline build with no optional features.
        max_output_bytes: Captured stdout/stderr kept per outcome (tail).
        on_outcome: Called with each outcome as it is recorded.

    Returns:
        The run report, also when fail-fast halted the run early.

    Raises:
        InvalidDepth: ``max_depth`` is negative; raised before any dispatch.

    """
    enumeration = enumerate_combinations(catalog, max_depth, exclude_empty=exclude_empty)
    orchestrator = Orchestrator(
        enumeration,
        Policy(policy),
        runner,
        jobs=jobs,
        max_output_bytes=max_output_bytes,
        on_outcome=on_outcome,
    )
    return orchestrator.run()
