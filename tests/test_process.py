"""Tests for the process executor and the interactive prompts."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from labractl.errors import CommandError
from labractl.process import (
    capture_command,
    choose_package_manager,
    command_succeeds,
    confirm,
    read_line,
    run_command,
)


def _make_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


# ============================================================================
# run_command
# ============================================================================

class TestRunCommand:

    def test_streams_output_and_closes_stdin(self, mock_subprocess):
        run_command("git", ["clone", "url", "demo"], "/tmp")
        args, kwargs = mock_subprocess.call_args
        assert args[0] == ["git", "clone", "url", "demo"]
        assert kwargs["cwd"] == "/tmp"
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert "stdout" not in kwargs
        assert "capture_output" not in kwargs

    def test_empty_cwd_means_current_directory(self, mock_subprocess):
        run_command("go", ["version"], "")
        assert mock_subprocess.call_args.kwargs["cwd"] is None

    def test_interactive_inherits_stdin(self, mock_subprocess):
        run_command("yarn", ["start"], interactive=True)
        assert mock_subprocess.call_args.kwargs["stdin"] is None

    def test_nonzero_exit_raises(self):
        with patch("labractl.process.subprocess.run", return_value=_make_result(2)):
            with pytest.raises(CommandError) as exc_info:
                run_command("go", ["generate", "./..."])
        assert exc_info.value.returncode == 2
        assert "go generate ./..." in str(exc_info.value)

    def test_spawn_failure_raises(self):
        with patch("labractl.process.subprocess.run", side_effect=FileNotFoundError("no git")):
            with pytest.raises(CommandError) as exc_info:
                run_command("git", ["--version"])
        assert exc_info.value.returncode is None
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_env_is_merged_with_current_environment(self, mock_subprocess, monkeypatch):
        monkeypatch.setenv("HOME_MARKER", "kept")
        run_command("createdb", ["demo"], env={"PGPASSWORD": "secret"})
        env = mock_subprocess.call_args.kwargs["env"]
        assert env["PGPASSWORD"] == "secret"
        assert env["HOME_MARKER"] == "kept"

    def test_no_env_inherits_parent(self, mock_subprocess):
        run_command("git", ["--version"])
        assert mock_subprocess.call_args.kwargs["env"] is None

    def test_windows_runs_through_cmd(self, mock_subprocess):
        with patch("labractl.process.IS_WINDOWS", True):
            run_command("yarn", ["install"])
        assert mock_subprocess.call_args[0][0] == ["cmd", "/C", "yarn", "install"]


# ============================================================================
# capture_command / command_succeeds
# ============================================================================

class TestCaptureCommand:

    def test_returns_output(self):
        with patch("labractl.process.subprocess.run", return_value=_make_result(0, "psql (PostgreSQL) 16.2\n")) as mock_run:
            assert capture_command("psql", ["--version"]) == "psql (PostgreSQL) 16.2\n"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.STDOUT

    def test_failure_attaches_output(self):
        with patch("labractl.process.subprocess.run", return_value=_make_result(1, "connection refused")):
            with pytest.raises(CommandError) as exc_info:
                capture_command("psql", ["-c", "SELECT 1"])
        assert exc_info.value.output == "connection refused"

    def test_command_succeeds_true_and_false(self):
        with patch("labractl.process.subprocess.run", return_value=_make_result(0)):
            assert command_succeeds("node", ["--version"]) is True
        with patch("labractl.process.subprocess.run", return_value=_make_result(127)):
            assert command_succeeds("node", ["--version"]) is False
        with patch("labractl.process.subprocess.run", side_effect=FileNotFoundError):
            assert command_succeeds("node", ["--version"]) is False


# ============================================================================
# Prompts
# ============================================================================

class TestReadLine:

    def test_strips_input(self):
        with patch("labractl.process.console.input", return_value="  demo \n"):
            assert read_line("name: ") == "demo"

    def test_closed_stdin_returns_empty(self):
        with patch("labractl.process.console.input", side_effect=EOFError):
            assert read_line("name: ") == ""


class TestConfirm:

    def test_assume_yes_skips_prompt(self, answers):
        read = answers()
        assert confirm("Install?", assume_yes=True, read=read) is True
        assert read.prompts == []

    @pytest.mark.parametrize("reply", ["y", "Y", "yes"])
    def test_yes_answers(self, answers, reply):
        assert confirm("Install?", read=answers(reply)) is True

    @pytest.mark.parametrize("reply", ["", "n", "no", "sure"])
    def test_anything_else_is_no(self, answers, reply):
        assert confirm("Install?", read=answers(reply)) is False

    def test_prompt_shows_default(self, answers):
        read = answers("n")
        confirm("Install?", read=read)
        assert read.prompts == ["Install? (y/N): "]


class TestChoosePackageManager:

    @pytest.mark.parametrize("reply", ["npm", "NPM", " npm "])
    def test_npm_variants(self, answers, reply):
        assert choose_package_manager(answers(reply)) == "npm"

    @pytest.mark.parametrize("reply", ["", "yarn", "pnpm", "npm2"])
    def test_everything_else_defaults_to_yarn(self, answers, reply):
        assert choose_package_manager(answers(reply)) == "yarn"
