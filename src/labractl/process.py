"""Running external programs and reading answers from the user."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Optional

from rich.markup import escape

from labractl.config import DEFAULT_PACKAGE_MANAGER
from labractl.console import IS_WINDOWS, console
from labractl.errors import CommandError

logger = logging.getLogger(__name__)


def _command_line(program: str, args: list[str]) -> list[str]:
    if IS_WINDOWS:
        # cmd.exe resolves .cmd shims such as yarn.cmd and npm.cmd
        return ["cmd", "/C", program, *args]
    return [program, *args]


def _child_env(env: Optional[dict]) -> Optional[dict]:
    if not env:
        return None
    merged = os.environ.copy()
    merged.update(env)
    return merged


def run_command(
    program: str,
    args: list[str],
    cwd: str | Path | None = None,
    *,
    env: Optional[dict] = None,
    interactive: bool = False,
) -> None:
    """Run a program with its output streamed to the terminal.

    An empty or missing ``cwd`` runs in the current directory. ``env`` entries
    are added on top of the current environment. With ``interactive`` the
    child also inherits stdin; otherwise stdin is closed so a child cannot
    block waiting on the terminal.

    Raises CommandError when the program cannot be started or exits non-zero.
    """
    cmd = _command_line(program, args)
    logger.debug("running %s (cwd=%s)", " ".join(cmd), cwd or ".")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd or None,
            env=_child_env(env),
            stdin=None if interactive else subprocess.DEVNULL,
        )
    except OSError as e:
        raise CommandError(program, args) from e
    if result.returncode != 0:
        raise CommandError(program, args, result.returncode)


def capture_command(
    program: str,
    args: list[str],
    cwd: str | Path | None = None,
    *,
    env: Optional[dict] = None,
) -> str:
    """Run a program and return its combined stdout and stderr.

    On failure the captured text is attached to the raised CommandError.
    """
    cmd = _command_line(program, args)
    logger.debug("running %s (cwd=%s, captured)", " ".join(cmd), cwd or ".")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd or None,
            env=_child_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
    except OSError as e:
        raise CommandError(program, args) from e
    output = result.stdout or ""
    if result.returncode != 0:
        logger.debug("%s failed with output:\n%s", program, output)
        raise CommandError(program, args, result.returncode, output=output)
    return output


def command_succeeds(program: str, args: list[str], cwd: str | Path | None = None) -> bool:
    """Run a program quietly and report whether it exited zero."""
    try:
        capture_command(program, args, cwd)
    except CommandError:
        return False
    return True


def read_line(prompt: str = "") -> str:
    """Print a prompt and return the next line of input, stripped.

    A closed input stream yields an empty string.
    """
    try:
        return console.input(escape(prompt)).strip()
    except EOFError:
        console.print()
        return ""


def confirm(prompt: str, assume_yes: bool = False, read: Callable[[str], str] = read_line) -> bool:
    if assume_yes:
        return True
    answer = read(f"{prompt} (y/N): ").lower()
    return answer in ("y", "yes")


def choose_package_manager(read: Callable[[str], str] = read_line) -> str:
    """Ask for npm or yarn. Anything other than npm selects yarn."""
    choice = read(f"Choose package manager (npm/yarn) [default: {DEFAULT_PACKAGE_MANAGER}]: ")
    if choice.strip().lower() == "npm":
        return "npm"
    return DEFAULT_PACKAGE_MANAGER
