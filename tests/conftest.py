"""Shared fixtures for labractl tests.

Every external program is mocked: no test clones, installs or talks to
PostgreSQL.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

# Ensure the src layout is importable without an install
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from labractl.config import Settings


def make_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    """Create a mock subprocess.CompletedProcess."""
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


@pytest.fixture(autouse=True)
def posix_command_lines():
    """Build command lines as on POSIX regardless of the host."""
    with patch("labractl.process.IS_WINDOWS", False):
        yield


@pytest.fixture(autouse=True)
def no_update_check():
    with patch("labractl.check_latest_version") as mock_check:
        yield mock_check


@pytest.fixture
def mock_subprocess():
    """Patch subprocess.run with a MagicMock returning exit code 0."""
    with patch("labractl.process.subprocess.run", return_value=make_result()) as mock_run:
        yield mock_run


@pytest.fixture
def settings():
    return Settings(assume_yes=True)


@pytest.fixture
def answers():
    """Factory for a scripted prompt reader.

    Usage:
        read = answers("n", "npm")
    """
    def _factory(*replies: str):
        queue = list(replies)
        prompts = []

        def _read(prompt: str) -> str:
            prompts.append(prompt)
            return queue.pop(0) if queue else ""

        _read.prompts = prompts
        return _read
    return _factory
