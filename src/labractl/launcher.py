"""Prepare the root package.json and start backend and frontend together."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from labractl.config import ADMIN_SUBDIR, APP_SUBDIR, CONCURRENCY_HELPER, MANIFEST_FILENAME
from labractl.console import console, emoji
from labractl.errors import CommandError, LaunchError, ManifestError
from labractl.process import command_succeeds, run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageManager:
    name: str
    # How one script invokes another, e.g. "yarn start:backend"
    run_prefix: str
    init_args: tuple[str, ...]
    list_args: tuple[str, ...]
    add_dev_args: tuple[str, ...]
    start_args: tuple[str, ...] = ("start",)

    def list_dependency(self, dep: str) -> list[str]:
        return [*self.list_args, dep]

    def add_dev_dependency(self, dep: str) -> list[str]:
        return [part.format(dep=dep) for part in self.add_dev_args]


PACKAGE_MANAGERS = {
    "yarn": PackageManager(
        name="yarn",
        run_prefix="yarn",
        init_args=("init", "-y"),
        list_args=("list", "--pattern"),
        add_dev_args=("add", "{dep}", "--dev"),
    ),
    "npm": PackageManager(
        name="npm",
        run_prefix="npm run",
        init_args=("init", "-y"),
        list_args=("ls",),
        add_dev_args=("install", "{dep}", "--save-dev"),
    ),
}


def start_scripts(pm: PackageManager) -> dict[str, str]:
    backend = Path(*APP_SUBDIR)
    frontend = Path(*ADMIN_SUBDIR)
    return {
        "start": f'{CONCURRENCY_HELPER} "{pm.run_prefix} start:backend" "{pm.run_prefix} start:frontend"',
        "start:backend": f"cd {backend} && go run main.go start",
        "start:frontend": f"cd {frontend} && {pm.run_prefix} dev",
    }


class TaskManifest:
    """package.json with a typed view of ``scripts``.

    Keys other than ``scripts`` are kept verbatim and in their original order
    when the file is written back.
    """

    def __init__(self, path: Path, data: dict[str, Any]):
        scripts = data.get("scripts")
        if scripts is not None and not isinstance(scripts, dict):
            raise ManifestError(f"'scripts' in {path} must be an object")
        self.path = path
        self.data = data

    @classmethod
    def load(cls, path: Path) -> "TaskManifest":
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Failed to read {path.name}: {e}") from e
        except UnicodeDecodeError as e:
            raise ManifestError(f"Failed to read {path.name}: not valid UTF-8 ({e})") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ManifestError(f"Failed to parse {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(f"{path.name} must contain a JSON object")
        return cls(path, data)

    @property
    def has_scripts(self) -> bool:
        return self.data.get("scripts") is not None

    @property
    def scripts(self) -> dict[str, str]:
        # "scripts": null counts as absent
        if self.data.get("scripts") is None:
            self.data["scripts"] = {}
        return self.data["scripts"]

    def merge_scripts(self, scripts: dict[str, str]) -> list[str]:
        """Add scripts whose names are not present yet. Returns the names added."""
        current = self.scripts
        added = []
        for name, command in scripts.items():
            if name not in current:
                current[name] = command
                added.append(name)
        return added

    def declares(self, dep: str) -> bool:
        for section in ("dependencies", "devDependencies"):
            deps = self.data.get(section)
            if isinstance(deps, dict) and dep in deps:
                return True
        return False

    def dumps(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"

    def save(self) -> None:
        try:
            self.path.write_text(self.dumps(), encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Failed to update {self.path.name}: {e}") from e


class ServiceLauncher:
    def __init__(self, root: Path = Path("."), package_manager: str = "yarn"):
        self.root = root
        self.pm = PACKAGE_MANAGERS[package_manager]
        self.manifest_path = root / MANIFEST_FILENAME

    def ensure_manifest(self) -> TaskManifest:
        if not self.manifest_path.exists():
            console.print(
                f"{emoji('📦', '[pkg]')} No {MANIFEST_FILENAME} found. "
                f"Initializing {self.pm.name} project..."
            )
            try:
                run_command(self.pm.name, list(self.pm.init_args), self.root)
            except CommandError as e:
                raise LaunchError(f"Failed to initialize {self.pm.name} project: {e}") from e
        return TaskManifest.load(self.manifest_path)

    def ensure_scripts(self, manifest: TaskManifest) -> list[str]:
        created = not manifest.has_scripts
        added = manifest.merge_scripts(start_scripts(self.pm))
        if added or created:
            manifest.save()
            console.print(f"{emoji('🛠', '[update]')} {MANIFEST_FILENAME} updated with start scripts.")
            logger.debug("added scripts: %s", ", ".join(added))
        return added

    def ensure_concurrency_helper(self, manifest: TaskManifest) -> bool:
        """Install the helper as a dev dependency when absent. Returns True if installed."""
        if manifest.declares(CONCURRENCY_HELPER):
            return False
        if command_succeeds(self.pm.name, self.pm.list_dependency(CONCURRENCY_HELPER), self.root):
            return False
        console.print(f"{emoji('📦', '[pkg]')} Installing {CONCURRENCY_HELPER}...")
        try:
            run_command(self.pm.name, self.pm.add_dev_dependency(CONCURRENCY_HELPER), self.root)
        except CommandError as e:
            raise LaunchError(f"Failed to install {CONCURRENCY_HELPER}: {e}") from e
        return True

    def launch(self) -> None:
        console.print(f"{emoji('🚀', '->')} Starting LabraGo backend + frontend")
        try:
            run_command(self.pm.name, list(self.pm.start_args), self.root, interactive=True)
        except CommandError as e:
            raise LaunchError(f"Failed to run {self.pm.name} start: {e}") from e

    def run(self) -> None:
        console.print(f"{emoji('🚦', '->')} Preparing LabraGo start...")
        manifest = self.ensure_manifest()
        self.ensure_scripts(manifest)
        self.ensure_concurrency_helper(manifest)
        self.launch()
