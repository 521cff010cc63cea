"""The create pipeline: clone the template and prepare it for local development."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from labractl.config import (
    ADMIN_SUBDIR,
    APP_SUBDIR,
    BACKEND_PORT,
    DB_HOST,
    DB_PASSWORD,
    DB_PORT,
    DB_USER,
    GO_MOD_PLACEHOLDER,
    GO_MOD_REPLACEMENT,
    SCHEMA_SUBDIR,
    Settings,
)
from labractl.console import StepTracker, console, emoji
from labractl.database import DatabaseProvisioner
from labractl.errors import CommandError, InvalidProjectNameError, PipelineError, ProvisionError
from labractl.prerequisites import PrerequisiteChecker, ToolState
from labractl.process import choose_package_manager, read_line, run_command

logger = logging.getLogger(__name__)

PROJECT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
# PostgreSQL truncates identifiers beyond this
MAX_PROJECT_NAME = 63

PIPELINE_STEPS = [
    ("precheck", "Check required tools"),
    ("package-manager", "Select package manager"),
    ("clone", "Clone template repository"),
    ("patch", "Patch go.mod"),
    ("backend-env", "Write backend .env"),
    ("frontend-env", "Write frontend .env"),
    ("generate", "Sync modules and generate code"),
    ("frontend-deps", "Install frontend dependencies"),
    ("database", "Provision PostgreSQL database"),
    ("final", "Finalize"),
]


def validate_project_name(name: str) -> str:
    if not name or len(name) > MAX_PROJECT_NAME or not PROJECT_NAME_RE.match(name):
        raise InvalidProjectNameError(
            f"Invalid project name '{name}'. Use a letter followed by letters, digits, "
            f"'-' or '_' (at most {MAX_PROJECT_NAME} characters)."
        )
    return name


@dataclass(frozen=True)
class ProjectContext:
    name: str
    repo_url: str
    root: Path
    app_dir: Path
    admin_dir: Path
    go_mod: Path
    schema_dir: Path

    @classmethod
    def create(cls, name: str, repo_url: str, base_dir: Optional[Path] = None) -> "ProjectContext":
        validate_project_name(name)
        root = (base_dir or Path.cwd()).resolve() / name
        app_dir = root.joinpath(*APP_SUBDIR)
        return cls(
            name=name,
            repo_url=repo_url,
            root=root,
            app_dir=app_dir,
            admin_dir=root.joinpath(*ADMIN_SUBDIR),
            go_mod=app_dir / "go.mod",
            schema_dir=app_dir.joinpath(*SCHEMA_SUBDIR),
        )

    @property
    def dsn(self) -> str:
        return f"postgres://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{self.name}?sslmode=disable"


@dataclass
class EnvFileSpec:
    """A dotenv file: ordered key/value pairs, optional header and grouping."""

    path: Path
    # Each group is written as a block separated by a blank line
    groups: list[list[tuple[str, str]]] = field(default_factory=list)
    header: str = ""

    def render(self) -> str:
        blocks = []
        if self.header:
            blocks.append(self.header)
        for group in self.groups:
            blocks.append("\n".join(f"{key}={value}" for key, value in group))
        return "\n\n".join(blocks) + "\n"

    def write(self) -> bool:
        """Write the file, returning False when it already had this content."""
        content = self.render()
        if self.path.is_file() and self.path.read_text(encoding="utf-8") == content:
            return False
        self.path.write_text(content, encoding="utf-8")
        return True


def backend_env(ctx: ProjectContext) -> EnvFileSpec:
    return EnvFileSpec(
        path=ctx.app_dir / ".env",
        header="# LabraGo Environment",
        groups=[
            [("SERVER_PORT", str(BACKEND_PORT)), ("SECRET_KEY", "supersecretdevkey")],
            [("DSN", ctx.dsn), ("DB_DIALECT", "postgres")],
            [("ENT_SCHEMA_PATH", str(ctx.schema_dir))],
            [("CENTRIFUGO_API_ADDRESS", "http://localhost:8000"), ("CENTRIFUGO_API_KEY", "secretkey")],
        ],
    )


def frontend_env(ctx: ProjectContext) -> EnvFileSpec:
    api = f"http://localhost:{BACKEND_PORT}"
    ws = f"ws://localhost:{BACKEND_PORT}"
    pairs = [
        ("NEXT_PUBLIC_BRAND_PRODUCT_NAME", "Labra·GO"),
        ("NEXT_PUBLIC_BRAND_COLOR", "blue"),
        ("NEXT_PUBLIC_GRAPHQL_API_URL", api),
        ("NEXT_PUBLIC_GRAPHQL_QUERY_API_URL", f"{api}/query"),
        ("NEXT_PUBLIC_GRAPHQL_QUERY_SUBSCRIPTION_URL", f"{ws}/query"),
        ("NEXT_PUBLIC_GRAPHQL_QUERY_PLAYGROUND_URL", f"{api}/playground"),
        ("NEXT_PUBLIC_GRAPHQL_ENTITY_API_URL", f"{api}/entity"),
        ("NEXT_PUBLIC_GRAPHQL_ENTITY_PLAYGROUND_URL", f"{api}/eplayground"),
    ]
    return EnvFileSpec(
        path=ctx.admin_dir / ".env",
        groups=[[(key, f'"{value}"') for key, value in pairs]],
    )


def patch_go_mod_content(content: str) -> str:
    return content.replace(GO_MOD_PLACEHOLDER, GO_MOD_REPLACEMENT, 1)


def patch_go_mod(path: Path) -> bool:
    """Point the template's API module at the sibling checkout.

    Returns False when the placeholder is absent (already patched).
    """
    content = path.read_text(encoding="utf-8")
    patched = patch_go_mod_content(content)
    if patched == content:
        return False
    path.write_text(patched, encoding="utf-8")
    return True


def sync_and_generate(app_dir: Path) -> bool:
    """Run go mod tidy then go generate, retrying the pair once.

    Returns whether generation eventually succeeded.
    """
    last_error = None
    for attempt in (1, 2):
        try:
            run_command("go", ["mod", "tidy"], app_dir)
        except CommandError as e:
            logger.debug("go mod tidy failed: %s", e)
        try:
            run_command("go", ["generate", "./..."], app_dir)
            return True
        except CommandError as e:
            if attempt == 1:
                console.print(f"{emoji('⚠️ ', '!')} [yellow]go generate failed, retrying...[/yellow]")
            last_error = e
    logger.warning("go generate failed twice: %s", last_error)
    return False


def install_frontend_deps(admin_dir: Path, package_manager: str) -> Optional[bool]:
    """Install admin dependencies. None means there was nothing to install."""
    if not (admin_dir / "package.json").is_file():
        return None
    console.print(f"{emoji('📦', '[pkg]')} Installing frontend dependencies with {package_manager}...")
    try:
        run_command(package_manager, ["install"], admin_dir)
    except CommandError as e:
        logger.warning("Frontend dependency install failed: %s", e)
        return False
    return True


class ProjectInitializer:
    """Drives the ordered create pipeline for one project.

    Required steps raise PipelineError; best-effort steps log a warning and
    let the pipeline continue.
    """

    def __init__(
        self,
        ctx: ProjectContext,
        settings: Settings,
        *,
        checker: Optional[PrerequisiteChecker] = None,
        provisioner: Optional[DatabaseProvisioner] = None,
        read: Callable[[str], str] = read_line,
        tracker: Optional[StepTracker] = None,
    ):
        self.ctx = ctx
        self.settings = settings
        self.read = read
        self.checker = checker or PrerequisiteChecker(settings, read=read)
        self.provisioner = provisioner or DatabaseProvisioner()
        self.tracker = tracker or StepTracker("Create LabraGo Project")
        for key, label in PIPELINE_STEPS:
            self.tracker.add(key, label)
        self.package_manager: Optional[str] = None

    def run(self) -> None:
        self.check_prerequisites()
        self.select_package_manager()
        self.clone()
        self.patch()
        self.write_env_files()
        self.generate()
        self.install_frontend()
        self.provision_database()
        self.tracker.complete("final", "project ready")

    def check_prerequisites(self) -> None:
        self.tracker.start("precheck")
        report = self.checker.check_all()
        ready = (ToolState.DETECTED, ToolState.INSTALLED)
        missing = sorted(name for name, state in report.items() if state not in ready)
        if missing:
            self.tracker.warn("precheck", "missing: " + ", ".join(missing))
        else:
            self.tracker.complete("precheck", "ok")

    def select_package_manager(self) -> None:
        self.package_manager = self.settings.package_manager or choose_package_manager(self.read)
        self.tracker.complete("package-manager", self.package_manager)

    def clone(self) -> None:
        self.tracker.start("clone", self.ctx.repo_url)
        try:
            run_command("git", ["clone", self.ctx.repo_url, self.ctx.name], self.ctx.root.parent)
        except CommandError as e:
            self._fail("clone", f"Git clone failed: {e}", e)
        self.tracker.complete("clone", str(self.ctx.root))

    def patch(self) -> None:
        try:
            changed = patch_go_mod(self.ctx.go_mod)
        except (OSError, UnicodeDecodeError) as e:
            self._fail("patch", f"go.mod patch failed: {e}", e)
        self.tracker.complete("patch", "replace directive added" if changed else "placeholder not found")

    def write_env_files(self) -> None:
        for key, build, label in (
            ("backend-env", backend_env, "Backend"),
            ("frontend-env", frontend_env, "Frontend"),
        ):
            spec = build(self.ctx)
            try:
                written = spec.write()
            except (OSError, UnicodeDecodeError) as e:
                self._fail(key, f"{label} .env failed: {e}", e)
            self.tracker.complete(key, "written" if written else "unchanged")

    def generate(self) -> None:
        self.tracker.start("generate")
        if sync_and_generate(self.ctx.app_dir):
            self.tracker.complete("generate")
        else:
            self.tracker.warn("generate", "go generate failed, continuing")

    def install_frontend(self) -> None:
        outcome = install_frontend_deps(self.ctx.admin_dir, self.package_manager)
        if outcome is None:
            self.tracker.skip("frontend-deps", "no package.json")
        elif outcome:
            self.tracker.complete("frontend-deps", self.package_manager)
        else:
            self.tracker.warn("frontend-deps", "install failed, continuing")

    def provision_database(self) -> None:
        self.tracker.start("database")
        try:
            result = self.provisioner.provision(self.ctx.name)
        except ProvisionError as e:
            logger.warning("PostgreSQL setup failed: %s", e)
            if e.diagnostics:
                logger.warning("Output: %s", e.diagnostics)
            self.tracker.warn("database", str(e).splitlines()[0])
            return
        self.tracker.complete("database", result.value)

    def _fail(self, step: str, message: str, cause: Exception):
        self.tracker.error(step, str(cause))
        raise PipelineError(step, message) from cause
