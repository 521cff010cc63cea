"""Make sure the project's PostgreSQL role and database exist.

Provisioning is safe to repeat: once the database exists every later run
stops at the existence check and creates nothing.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from labractl.config import DB_HOST, DB_PORT, DB_SUPERUSER_ROLE, DB_USER, db_password
from labractl.console import console, emoji
from labractl.errors import CommandError, ProvisionError
from labractl.process import capture_command

logger = logging.getLogger(__name__)

INSTALL_HINTS = (
    "psql not found. Install it:\n"
    "→ macOS: brew install postgresql\n"
    "→ Ubuntu: sudo apt install postgresql\n"
    "→ Windows: https://postgresql.org/download"
)


class ProvisionResult(str, Enum):
    CREATED = "created"
    EXISTS = "exists"


class PostgresDriver(Protocol):
    def database_exists(self, name: str) -> bool: ...

    def create_database(self, name: str) -> None: ...


def maintenance_url() -> URL:
    return URL.create(
        "postgresql+psycopg2",
        username=DB_USER,
        password=db_password(),
        host=DB_HOST,
        port=DB_PORT,
        database="postgres",
    )


class SQLAlchemyDriver:
    """PostgresDriver talking to the server's maintenance database."""

    def __init__(self, url: Optional[URL] = None):
        self.url = url or maintenance_url()
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            # CREATE DATABASE cannot run inside a transaction block; one-shot
            # connections, nothing pooled past the run
            self._engine = create_engine(self.url, isolation_level="AUTOCOMMIT", poolclass=NullPool)
        return self._engine

    def database_exists(self, name: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": name},
            ).first()
        return row is not None

    def create_database(self, name: str) -> None:
        quoted = self.engine.dialect.identifier_preparer.quote_identifier(name)
        with self.engine.connect() as conn:
            conn.execute(text(f"CREATE DATABASE {quoted}"))


class DatabaseProvisioner:
    def __init__(self, driver: Optional[PostgresDriver] = None):
        self.driver = driver if driver is not None else SQLAlchemyDriver()

    def ensure_client(self) -> None:
        try:
            capture_command("psql", ["--version"])
        except CommandError as e:
            raise ProvisionError(INSTALL_HINTS) from e

    def ensure_role(self) -> None:
        """Create the superuser role, ignoring failure (it usually exists)."""
        try:
            capture_command(
                "createuser", ["-s", DB_SUPERUSER_ROLE], env={"PGPASSWORD": db_password()}
            )
        except CommandError as e:
            logger.debug("createuser skipped: %s", e)

    def provision(self, name: str) -> ProvisionResult:
        console.print(f"{emoji('🐘', '[db]')} Checking PostgreSQL...")
        self.ensure_client()
        self.ensure_role()

        try:
            exists = self.driver.database_exists(name)
        except SQLAlchemyError as e:
            console.print(f"{emoji('❌', 'X')} [red]Failed to connect to PostgreSQL or run query.[/red]")
            raise ProvisionError(f"existence query for '{name}' failed", diagnostics=str(e)) from e

        if exists:
            console.print(f"{emoji('✅', '[ok]')} PostgreSQL DB exists: [cyan]{name}[/cyan]")
            return ProvisionResult.EXISTS

        try:
            self.driver.create_database(name)
        except SQLAlchemyError as e:
            raise ProvisionError(f"failed to create database '{name}'", diagnostics=str(e)) from e

        console.print(f"{emoji('✅', '[ok]')} PostgreSQL database created: [cyan]{name}[/cyan]")
        return ProvisionResult.CREATED
