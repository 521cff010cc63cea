"""Detect the external tools a LabraGo project needs and offer to install them."""

import logging
import os
import platform
import shutil
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from labractl.config import Settings
from labractl.console import console, emoji
from labractl.errors import CommandError, InstallUnsupportedError
from labractl.process import capture_command, command_succeeds, confirm, read_line, run_command

logger = logging.getLogger(__name__)


class ToolState(str, Enum):
    DETECTED = "detected"
    MISSING = "missing"
    INSTALLED = "installed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ToolRequirement:
    name: str
    label: str
    package: str
    version_args: tuple[str, ...] = ("--version",)
    # Substring the version report must contain; empty means any successful run
    signature: str = ""


REQUIRED_TOOLS = (
    ToolRequirement("git", "Git version control", "git"),
    ToolRequirement("go", "Go toolchain", "golang", ("version",), "go version"),
    ToolRequirement("node", "Node.js runtime", "node"),
    ToolRequirement("psql", "PostgreSQL client", "postgresql"),
)


def find_requirement(name: str) -> Optional[ToolRequirement]:
    for req in REQUIRED_TOOLS:
        if req.name == name:
            return req
    return None


def _runtime_available(req: ToolRequirement) -> bool:
    """Strict check: on PATH, executable, and self-identifying."""
    # F_OK: permission bits are checked below
    path = shutil.which(req.name, mode=os.F_OK)
    if not path:
        logger.debug("%s not found on PATH", req.name)
        return False
    if platform.system() != "Windows" and not os.access(path, os.X_OK):
        logger.debug("%s at %s is not executable", req.name, path)
        return False
    try:
        output = capture_command(path, list(req.version_args))
    except CommandError:
        return False
    if req.signature not in output:
        logger.debug("unexpected %s version output: %r", req.name, output)
        return False
    return True


def tool_available(req: ToolRequirement) -> bool:
    if req.signature:
        return _runtime_available(req)
    return command_succeeds(req.name, list(req.version_args))


# ---------------------------------------------------------------------------
# Installation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlatformInstallPlan:
    """How packages are installed on one operating system family."""

    os_name: str
    template: tuple[str, ...]
    # Package manager that must already be present for the plan to apply
    requires: Optional[str] = None

    def invocation(self, package: str) -> list[str]:
        return [part.format(package=package) for part in self.template]


INSTALL_PLANS = {
    "Darwin": PlatformInstallPlan("Darwin", ("brew", "install", "{package}")),
    "Linux": PlatformInstallPlan("Linux", ("sudo", "apt", "install", "-y", "{package}")),
    "Windows": PlatformInstallPlan("Windows", ("choco", "install", "{package}", "-y"), requires="choco"),
}


def resolve_install_plan(tool: str, os_name: Optional[str] = None) -> list[str]:
    """Return the install command line for a logical tool name on os_name."""
    req = find_requirement(tool)
    if req is None:
        raise InstallUnsupportedError(f"no install instructions for {tool}")
    os_name = os_name or platform.system()
    plan = INSTALL_PLANS.get(os_name)
    if plan is None or (plan.requires and not command_succeeds(plan.requires, ["--version"])):
        raise InstallUnsupportedError(f"automatic install not supported, please install {tool} manually")
    return plan.invocation(req.package)


def install_tool(tool: str, os_name: Optional[str] = None) -> None:
    os_name = os_name or platform.system()
    console.print(f"{emoji('⬇️', '[get]')} Installing [cyan]{tool}[/cyan] on {os_name}...")
    cmd = resolve_install_plan(tool, os_name)
    run_command(cmd[0], cmd[1:])


class PrerequisiteChecker:
    """Walk the required tools, offering an install for each missing one.

    Never raises: every outcome is reported in the returned mapping so the
    create pipeline can always move on to its next step.
    """

    def __init__(
        self,
        settings: Settings,
        tools: tuple[ToolRequirement, ...] = REQUIRED_TOOLS,
        read: Callable[[str], str] = read_line,
        os_name: Optional[str] = None,
    ):
        self.settings = settings
        self.tools = tools
        self.read = read
        self.os_name = os_name

    def scan(self) -> dict[str, ToolState]:
        return {
            req.name: ToolState.DETECTED if tool_available(req) else ToolState.MISSING
            for req in self.tools
        }

    def check_all(self) -> dict[str, ToolState]:
        results: dict[str, ToolState] = {}
        for req in self.tools:
            if tool_available(req):
                logger.debug("%s detected", req.name)
                results[req.name] = ToolState.DETECTED
                continue
            results[req.name] = self._handle_missing(req)
        return results

    def _handle_missing(self, req: ToolRequirement) -> ToolState:
        console.print(
            f"{emoji('⚠️ ', '!')} [yellow]{req.name}[/yellow] is not detected. "
            "You may encounter issues if it's not available at runtime."
        )
        if not confirm(
            f"{emoji('👉', '>')} Do you want to attempt installing it now?",
            assume_yes=self.settings.assume_yes,
            read=self.read,
        ):
            return ToolState.SKIPPED
        try:
            install_tool(req.name, self.os_name)
        except (CommandError, InstallUnsupportedError) as e:
            logger.warning("Failed to install %s: %s", req.name, e)
            return ToolState.FAILED
        console.print(f"{emoji('✅', '[ok]')} {req.name} installed successfully")
        return ToolState.INSTALLED
