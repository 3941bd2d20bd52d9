"""Tests for featsweep CLI commands."""

import json
import os
import sys

import yaml
from typer.testing import CliRunner

from featsweep.cli.main import app

runner = CliRunner()


class TestInitCommand:
    """Tests for featsweep init command."""

    def test_init_creates_project_file(self, temp_dir):
        """Test that init writes a loadable featsweep.yaml."""
        os.chdir(temp_dir)

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        project_file = temp_dir / "featsweep.yaml"
        assert project_file.exists()
        data = yaml.safe_load(project_file.read_text())
        assert data["features"]
        assert [step["name"] for step in data["steps"]] == ["clippy", "test", "doctest"]

    def test_init_already_initialized(self, project):
        """Test init when already initialized."""
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Already initialized" in result.stdout


class TestPlanCommand:
    """Tests for featsweep plan command."""

    def test_plan_lists_combinations(self, project):
        """Test plan previews the run without executing."""
        result = runner.invoke(app, ["plan"])

        assert result.exit_code == 0
        assert "6 combinations" in result.stdout
        assert "(no features)" in result.stdout
        assert "conflicting: 1" in result.stdout
        assert not (project / ".featsweep").exists()

    def test_plan_depth_override(self, project):
        """Test --depth changes the preview."""
        result = runner.invoke(app, ["plan", "--depth", "1"])

        assert result.exit_code == 0
        assert "4 combinations" in result.stdout

    def test_plan_exclude_empty(self, project):
        """Test --exclude-empty drops the baseline."""
        result = runner.invoke(app, ["plan", "--exclude-empty"])

        assert result.exit_code == 0
        assert "5 combinations" in result.stdout
        assert "excluded: 1" in result.stdout

    def test_plan_invalid_depth(self, project):
        """Test a negative depth is a configuration error."""
        result = runner.invoke(app, ["plan", "--depth", "-1"])

        assert result.exit_code == 3
        assert "Invalid depth" in result.stdout


class TestRunCommand:
    """Tests for featsweep run command."""

    def test_run_reports_failing_combination(self, project):
        """Test a failing combination yields exit code 1."""
        result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "1 failing combination(s)" in result.stdout
        assert "a, c" in result.stdout
        assert "a and c are incompatible" in result.stdout

    def test_run_all_pass(self, project):
        """Test exit code 0 when every combination passes."""
        result = runner.invoke(app, ["run", "--depth", "1"])

        assert result.exit_code == 0
        assert "failing" not in result.stdout

    def test_run_fail_fast(self, project):
        """Test --fail-fast halts with exit code 2."""
        result = runner.invoke(app, ["run", "--fail-fast"])

        assert result.exit_code == 2
        assert "Halted" in result.stdout

    def test_run_parallel(self, project):
        """Test --jobs gives the same result."""
        result = runner.invoke(app, ["run", "--jobs", "3"])

        assert result.exit_code == 1
        assert "1 failing combination(s)" in result.stdout

    def test_run_command_override(self, project):
        """Test a command after -- replaces the configured steps."""
        result = runner.invoke(
            app,
            [
                "run",
                "--depth",
                "1",
                "--",
                sys.executable,
                "-c",
                "import sys; sys.exit(7 if 'b' in sys.argv[1] else 0)",
                "{{features}}",
            ],
        )

        assert result.exit_code == 1
        assert "exit code: 7" in result.stdout

    def test_run_writes_report(self, project):
        """Test --report writes a JSON report that show can render."""
        result = runner.invoke(app, ["run", "--report", "report.json"])
        assert result.exit_code == 1

        data = json.loads((project / "report.json").read_text())
        assert data["summary"]["attempted"] == 6
        assert data["summary"]["failing"] == [["a", "c"]]
        assert data["outcomes"][0]["combination"] == []

        result = runner.invoke(app, ["show", "report.json"])
        assert result.exit_code == 1
        assert "failed" in result.stdout
        assert "succeeded" in result.stdout

        result = runner.invoke(app, ["show", "report.json", "--failed"])
        assert result.exit_code == 1
        assert "succeeded" not in result.stdout.split("Summary")[0]

    def test_run_without_project(self, temp_dir):
        """Test run outside a project is a configuration error."""
        os.chdir(temp_dir)

        result = runner.invoke(app, ["run", "--project", str(temp_dir / "missing.yaml")])

        assert result.exit_code == 3
        assert "Error" in result.stdout

    def test_run_contradictory_catalog(self, project):
        """Test an inconsistent catalog exits before running anything."""
        data = yaml.safe_load((project / "featsweep.yaml").read_text())
        data["requires"] = [["b", "c"]]
        (project / "featsweep.yaml").write_text(yaml.safe_dump(data))

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 3
        assert "requires and conflicts" in result.stdout
        assert not (project / ".featsweep").exists()

    def test_run_from_subdirectory(self, project):
        """Test relative step commands resolve against the project root."""
        script = project / "fail.sh"
        script.write_text("#!/bin/sh\necho broken >&2\nexit 1\n")
        script.chmod(0o755)
        (project / "sub").mkdir()
        os.chdir(project / "sub")

        result = runner.invoke(app, ["run", "--depth", "1", "--", "./fail.sh"])

        assert result.exit_code == 1
        assert "4 failing combination(s)" in result.stdout
        assert "Every combination was skipped" not in result.stdout

    def test_run_all_skipped_warns(self, project):
        """Test a run where every step is missing says nothing was built."""
        result = runner.invoke(
            app, ["run", "--depth", "1", "--", "featsweep-no-such-tool-xyz"]
        )

        assert result.exit_code == 0
        assert "Every combination was skipped" in result.stdout
        assert "featsweep doctor" in result.stdout


class TestShowCommand:
    """Tests for featsweep show command."""

    def test_show_invalid_report(self, temp_dir):
        """Test a malformed report is rejected."""
        bad = temp_dir / "bad.json"
        bad.write_text("{not json")

        result = runner.invoke(app, ["show", str(bad)])

        assert result.exit_code == 3
        assert "Error loading report" in result.stdout


class TestDoctorCommand:
    """Tests for featsweep doctor command."""

    def test_doctor_ok(self, project):
        """Test doctor on a healthy project."""
        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "Catalog: 3 features" in result.stdout
        assert "Depth 2: 6 combinations" in result.stdout
        assert "All checks passed" in result.stdout

    def test_doctor_missing_tool(self, project):
        """Test doctor flags step executables missing from PATH."""
        data = yaml.safe_load((project / "featsweep.yaml").read_text())
        data["steps"].append({"name": "lint", "command": "featsweep-no-such-tool-xyz"})
        (project / "featsweep.yaml").write_text(yaml.safe_dump(data))

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "not found" in result.stdout
        assert "Found 1 issue(s)" in result.stdout

    def test_doctor_relative_script_from_subdirectory(self, project):
        """Test doctor finds relative step scripts from anywhere in the project."""
        script = project / "lint.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o755)
        data = yaml.safe_load((project / "featsweep.yaml").read_text())
        data["steps"].append({"name": "lint", "command": "./lint.sh"})
        (project / "featsweep.yaml").write_text(yaml.safe_dump(data))
        (project / "sub").mkdir()
        os.chdir(project / "sub")

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "not found" not in result.stdout
        assert "All checks passed" in result.stdout
