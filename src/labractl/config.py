"""Constants and runtime settings shared by the labractl commands."""

import os
from dataclasses import dataclass
from importlib import metadata

REPO_URL = "https://github.com/GoLabra/labra"
RELEASES_URL = "https://api.github.com/repos/GoLabra/labractl/releases/latest"

BACKEND_PORT = 4001

# Template layout relative to the project root
APP_SUBDIR = ("src", "app")
ADMIN_SUBDIR = ("src", "admin")
SCHEMA_SUBDIR = ("ent", "schema")

GO_MOD_PLACEHOLDER = "// REPLACE_LABRAGO_DEVELOPMENT_API"
GO_MOD_REPLACEMENT = "replace github.com/GoLabra/labra/src/api => ../api"

DB_HOST = "localhost"
DB_PORT = 5432
DB_USER = "postgres"
DB_PASSWORD = "postgres"
DB_SUPERUSER_ROLE = "postgres"

PACKAGE_MANAGER_CHOICES = {"yarn": "Yarn", "npm": "npm"}
DEFAULT_PACKAGE_MANAGER = "yarn"

CONCURRENCY_HELPER = "concurrently"
MANIFEST_FILENAME = "package.json"


def env_flag(name: str) -> bool:
    """Return True when the environment variable holds 1 or true (any case)."""
    return os.getenv(name, "").strip().lower() in {"1", "true"}


def db_password() -> str:
    return os.getenv("PGPASSWORD") or DB_PASSWORD


@dataclass(frozen=True)
class Settings:
    """Options resolved once by the CLI and passed to every component."""

    assume_yes: bool = False
    debug: bool = False
    repo_url: str = REPO_URL
    package_manager: str | None = None


def installed_version() -> str:
    try:
        return metadata.version("labractl")
    except metadata.PackageNotFoundError:
        return "dev"
