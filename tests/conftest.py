# Copyright (c) Syntropy Systems
"""Pytest fixtures for featsweep tests."""

import os
import shlex
import sys
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
import yaml

# Store original cwd at module load time
_original_cwd = Path.cwd()

# Fails when features a and c are combined; prints to both streams.
CHECK_SCRIPT = """\
import sys

features = [f for f in sys.argv[1].split(",") if f]
print("building", ",".join(features) or "(none)")
if "a" in features and "c" in features:
    sys.stderr.write("error: a and c are incompatible\\n")
    sys.exit(3)
"""


def python_command(*args: str) -> str:
    """Shell-style command string running the current interpreter."""
    return shlex.join([sys.executable, *args])


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
        os.chdir(_original_cwd)


@pytest.fixture
def project(temp_dir: Path) -> Generator[Path, None, None]:
    """Create a temporary project with features a, b, c (b conflicts with c)."""
    (temp_dir / "check.py").write_text(CHECK_SCRIPT)

    data = {
        "features": ["a", "b", "c"],
        "conflicts": [["b", "c"]],
        "depth": 2,
        "steps": [
            {"name": "check", "command": python_command("check.py", "{{features}}")},
        ],
    }
    with (temp_dir / "featsweep.yaml").open("w") as f:
        yaml.safe_dump(data, f, sort_keys=False)

    # Change to temp directory
    os.chdir(temp_dir)

    yield temp_dir

    # Always return to original cwd
    os.chdir(_original_cwd)
