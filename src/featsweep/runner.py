# Copyright (c) Syntropy Systems
"""Command runners that execute build/test steps for one combination."""
from __future__ import annotations

import contextlib
import ctypes
import functools
import hashlib
import logging
import os
import re
import shlex
import shutil
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from featsweep.errors import DispatchError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from featsweep.combinations import Combination

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
MISSING_EXECUTABLE_EXIT_CODE = 127
_PR_SET_PDEATHSIG = 1
_SLUG_UNSAFE = re.compile(r"[^A-Za-z0-9_.+-]")


@dataclass
class RunnerResult:
    """What a command runner reports for one combination."""

    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    duration: float = 0.0
    skipped: bool = False
    failed_step: str | None = None
    stdout_truncated: bool = False
    stderr_truncated: bool = False


class CommandRunner(Protocol):
    """Anything that can build/test one combination.

    Implementations must not share mutable state between calls, and raise
    :class:`~featsweep.errors.DispatchError` when the command cannot be
    launched at all.
    """

    def execute(self, combination: Combination) -> RunnerResult:
        """Run the command for ``combination`` and report the result."""
        ...


@dataclass
class CommandStep:
    """One named command run for every combination."""

    name: str
    argv: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.argv:
            msg = f"Step '{self.name}' has an empty command"
            raise ValueError(msg)

    @classmethod
    def parse(cls, name: str, command: str) -> CommandStep:
        """Build a step from a shell-style command string (no shell is used)."""
        return cls(name=name, argv=shlex.split(command))


def die_with_parent_hook() -> Callable[[], None] | None:
    """``preexec_fn`` that has the kernel SIGKILL a step when featsweep dies.

    prctl is looked up here, in the parent, so the forked child only makes
    the call. Returns None off Linux or when libc has no prctl.
    """
    if sys.platform != "linux":
        return None
    try:
        prctl = ctypes.CDLL(None, use_errno=True).prctl
    except (AttributeError, OSError):
        return None
    return functools.partial(prctl, _PR_SET_PDEATHSIG, int(signal.SIGKILL))


def resolve_executable(
    executable: str,
    workdir: Path,
    path: str | None = None,
) -> str | None:
    """Locate ``executable`` the way a step launched in ``workdir`` sees it.

    Names containing a path separator are taken relative to ``workdir``;
    bare names are looked up on ``path`` (default: ``$PATH``).
    """
    separators = [os.sep] + ([os.altsep] if os.altsep else [])
    if not any(sep in executable for sep in separators):
        return shutil.which(executable, path=path)

    candidate = Path(executable)
    if not candidate.is_absolute():
        candidate = workdir / candidate
    if candidate.is_file() and os.access(candidate, os.X_OK):
        return str(candidate)
    return None


def read_tail(path: Path, limit: int | None = None) -> tuple[bytes, bool]:
    """Read at most the last ``limit`` bytes of ``path``.

    Returns the data and whether anything before it was left unread.
    """
    if not path.exists():
        return b"", False
    with path.open("rb") as f:
        size = f.seek(0, os.SEEK_END)
        if limit is None or size <= limit:
            _ = f.seek(0)
            return f.read(), False
        _ = f.seek(size - limit)
        return f.read(), True


def combination_slug(combination: Combination) -> str:
    """File-system-safe, collision-free name for a combination."""
    if not combination:
        return "no-features"
    raw = "+".join(combination)
    slug = _SLUG_UNSAFE.sub("_", raw)
    if slug != raw:
        digest = hashlib.sha1(raw.encode()).hexdigest()[:8]  # noqa: S324
        slug = f"{slug}-{digest}"
    return slug


def substitute_templates(argv: list[str], variables: Mapping[str, str]) -> list[str]:
    """Replace ``{{name}}`` placeholders in command argv."""
    result: list[str] = []
    for arg in argv:
        for key, value in variables.items():
            arg = arg.replace(f"{{{{{key}}}}}", value)  # noqa: PLW2901
        result.append(arg)
    return result


class StepProcess:
    """One step command running in its own process group.

    stdout and stderr go to ``stdout.log`` and ``stderr.log`` under
    ``output_dir``. Stopping a step signals the whole group, so build tools
    that fork compilers do not leave them behind.
    """

    argv: list[str]
    workdir: Path
    output_dir: Path
    stdout_path: Path
    stderr_path: Path
    env: dict[str, str]
    _process: subprocess.Popen[bytes] | None

    def __init__(
        self,
        argv: list[str],
        workdir: Path,
        output_dir: Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.argv = argv
        self.workdir = workdir
        self.output_dir = output_dir
        self.stdout_path = output_dir / "stdout.log"
        self.stderr_path = output_dir / "stderr.log"
        self.env = {**os.environ, **(env or {})}
        self._process = None

    def start(self) -> None:
        """Launch the step.

        Raises:
            OSError: The log files could not be created or the command
                could not be launched.

        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        # Popen hands the descriptors to the child; ours can close right away.
        with (
            self.stdout_path.open("wb") as stdout,
            self.stderr_path.open("wb") as stderr,
        ):
            self._process = subprocess.Popen(  # noqa: S603
                self.argv,
                stdout=stdout,
                stderr=stderr,
                env=self.env,
                cwd=str(self.workdir),
                start_new_session=True,
                preexec_fn=die_with_parent_hook(),  # noqa: PLW1509
            )

    def finish(self, timeout: float | None, grace_period: float) -> tuple[int, bool]:
        """Wait for the step, stopping it once ``timeout`` seconds pass.

        Returns the exit code and whether the step timed out; a timed-out
        step reports :data:`TIMEOUT_EXIT_CODE`.
        """
        process = self._started()
        try:
            return process.wait(timeout=timeout), False
        except subprocess.TimeoutExpired:
            _ = self.stop(grace_period)
            return TIMEOUT_EXIT_CODE, True

    def stop(self, grace_period: float = 10.0) -> int:
        """SIGTERM the process group, then SIGKILL what survives ``grace_period``.

        Returns the exit code of the step (negative signal number if killed).
        """
        process = self._started()
        for sig, allowed in ((signal.SIGTERM, grace_period), (signal.SIGKILL, 5.0)):
            if process.poll() is not None:
                break
            self._signal_group(sig)
            with contextlib.suppress(subprocess.TimeoutExpired):
                _ = process.wait(timeout=allowed)

        return process.returncode if process.returncode is not None else -signal.SIGKILL

    def _signal_group(self, sig: int) -> None:
        # start_new_session makes the step its own group leader
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(self._started().pid, sig)

    def _started(self) -> subprocess.Popen[bytes]:
        if self._process is None:
            msg = "Step process has not been started"
            raise RuntimeError(msg)
        return self._process

    @property
    def pid(self) -> int | None:
        """Process ID, once started."""
        return None if self._process is None else self._process.pid

    @property
    def exit_code(self) -> int | None:
        """Exit code if finished."""
        return None if self._process is None else self._process.poll()


def _append_bounded(buffer: bytearray, data: bytes, limit: int | None) -> bool:
    """Append ``data`` keeping at most the last ``limit`` bytes; True if cut."""
    buffer += data
    if limit is None or len(buffer) <= limit:
        return False
    del buffer[: len(buffer) - limit]
    return True


class ShellCommandRunner:
    """Runs a sequence of command steps for each combination.

    Steps run in order; the first failing step ends the sequence. Every
    combination gets its own scratch directory under ``work_root`` so
    concurrent dispatches never share an output location.

    Template variables available in step arguments:
        {{features}} - comma-joined combination
        {{features_space}} - space-joined combination
        {{defaults}} - comma-joined default features
        {{scratch_dir}} - per-combination scratch directory
        {{slug}} - file-system-safe combination name
    """

    steps: list[CommandStep]
    work_root: Path
    workdir: Path
    env: dict[str, str]
    timeout: float | None
    kill_grace_period: float
    defaults: tuple[str, ...]
    max_output_bytes: int | None

    def __init__(
        self,
        steps: Iterable[CommandStep],
        work_root: Path,
        *,
        workdir: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        kill_grace_period: float = 10.0,
        defaults: Iterable[str] = (),
        max_output_bytes: int | None = None,
    ) -> None:
        self.steps = list(steps)
        if not self.steps:
            msg = "At least one step is required"
            raise ValueError(msg)
        self.work_root = work_root
        self.workdir = workdir if workdir is not None else Path.cwd()
        self.env = dict(env or {})
        self.timeout = timeout
        self.kill_grace_period = kill_grace_period
        self.defaults = tuple(defaults)
        self.max_output_bytes = max_output_bytes

    def scratch_dir(self, combination: Combination) -> Path:
        """Isolated output directory for ``combination``."""
        return self.work_root / "runs" / combination_slug(combination)

    def execute(self, combination: Combination) -> RunnerResult:
        """Run every step for ``combination``.

        Raises:
            DispatchError: The scratch directory could not be created, or a
                step could not be launched for a reason other than its
                executable being missing.

        """
        scratch = self.scratch_dir(combination)
        try:
            scratch.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Could not create scratch directory {scratch}: {e}"
            raise DispatchError(msg) from e

        variables = {
            "features": ",".join(combination),
            "features_space": " ".join(combination),
            "defaults": ",".join(self.defaults),
            "scratch_dir": str(scratch),
            "slug": combination_slug(combination),
        }
        env = {
            **self.env,
            "FEATSWEEP_FEATURES": variables["features"],
            "FEATSWEEP_SCRATCH_DIR": variables["scratch_dir"],
        }

        started = time.monotonic()
        limit = self.max_output_bytes
        stdout = bytearray()
        stderr = bytearray()
        stdout_cut = stderr_cut = False

        def result(
            exit_code: int,
            *,
            skipped: bool = False,
            failed_step: str | None = None,
        ) -> RunnerResult:
            return RunnerResult(
                exit_code=exit_code,
                stdout=bytes(stdout),
                stderr=bytes(stderr),
                duration=time.monotonic() - started,
                stdout_truncated=stdout_cut,
                stderr_truncated=stderr_cut,
                skipped=skipped,
                failed_step=failed_step,
            )

        for step in self.steps:
            argv = substitute_templates(step.argv, variables)

            if resolve_executable(argv[0], self.workdir, self.env.get("PATH")) is None:
                logger.info("Skipping %s: '%s' not found", variables["slug"], argv[0])
                stderr_cut |= _append_bounded(
                    stderr, f"{argv[0]}: command not found\n".encode(), limit
                )
                return result(
                    MISSING_EXECUTABLE_EXIT_CODE, skipped=True, failed_step=step.name
                )

            process = StepProcess(argv, self.workdir, scratch / step.name, env)
            logger.debug("Launching step '%s': %s", step.name, shlex.join(argv))
            try:
                process.start()
            except OSError as e:
                msg = f"Could not launch step '{step.name}' ({argv[0]}): {e}"
                raise DispatchError(msg) from e

            code, timed_out = process.finish(self.timeout, self.kill_grace_period)
            if timed_out:
                logger.info(
                    "Step '%s' timed out after %ss for %s",
                    step.name,
                    self.timeout,
                    variables["slug"],
                )

            out, out_cut = read_tail(process.stdout_path, limit)
            err, err_cut = read_tail(process.stderr_path, limit)
            if len(self.steps) > 1:
                header = f"$ {shlex.join(argv)}\n".encode()
                out = header + out
                err = header + err
            if timed_out:
                err += f"step '{step.name}' timed out after {self.timeout}s\n".encode()
            stdout_cut |= _append_bounded(stdout, out, limit) or out_cut
            stderr_cut |= _append_bounded(stderr, err, limit) or err_cut

            if code != 0:
                return result(code, failed_step=step.name)

        return result(0)
