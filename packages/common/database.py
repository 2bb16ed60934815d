"""SQLite database handle, transactions and migrations."""

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from packages.common.config import Settings, get_settings
from packages.common.exceptions import DatabaseConnectionError, DatabaseError, MigrationError
from packages.common.logging import get_logger

logger = get_logger(module=__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class Database:
    """The single process-wide SQLite connection.

    Opened once at startup and handed to every service. SQLite allows one
    writer at a time, and the connection is shared between threads (the API
    runs sync handlers in a threadpool), so every transaction and read holds
    ``_lock`` for its whole duration.
    """

    def __init__(self, conn: sqlite3.Connection, path: str) -> None:
        self._conn: sqlite3.Connection | None = conn
        self.path = path
        self._lock = threading.RLock()

    @classmethod
    def open(cls, settings: Settings | None = None, path: str | None = None) -> "Database":
        """Open the database file and apply connection pragmas.

        Args:
            settings: Application settings; ``database_path`` is used when
                ``path`` is not given.
            path: Explicit database path or ``:memory:``.
        """
        if path is None:
            settings = settings or get_settings()
            path = settings.database_path

        if path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            path = str(Path(path).expanduser())

        try:
            conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        except sqlite3.Error as exc:
            raise DatabaseConnectionError(
                f"Cannot open database: {exc}", context={"path": path}
            ) from exc

        conn.row_factory = sqlite3.Row
        if path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA busy_timeout = 5000")

        logger.debug("database_opened", path=path)
        return cls(conn, path)

    @property
    def closed(self) -> bool:
        return self._conn is None

    def close(self) -> None:
        """Close the connection. Safe to call twice."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("database_closed", path=self.path)

    def _ensure_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseConnectionError("Database is closed", context={"path": self.path})
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block as one atomic unit of work.

        Commits when the block exits normally. Any exception rolls the whole
        unit back; SQLite errors are re-raised as ``DatabaseError``.
        """
        with self._lock:
            conn = self._ensure_open()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise DatabaseError(f"Cannot begin transaction: {exc}") from exc

            try:
                yield conn
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise DatabaseError(str(exc)) from exc
            except BaseException:
                self._rollback(conn)
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise DatabaseError(f"Commit failed: {exc}") from exc

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Borrow the connection for read-only queries."""
        with self._lock:
            conn = self._ensure_open()
            try:
                yield conn
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")


@dataclass
class MigrationResult:
    """Result of a migration run."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _migration_version(migration_file: Path) -> int:
    prefix = migration_file.stem.split("_", 1)[0]
    if not prefix.isdigit():
        raise MigrationError(
            f"Migration file name must start with a number: {migration_file.name}"
        )
    return int(prefix)


def run_migrations(db: Database, migrations_dir: Path | None = None) -> MigrationResult:
    """Run all pending migrations.

    Tracks applied versions in a `schema_version` table so each .sql file
    executes at most once. Every file runs in its own transaction together
    with its `schema_version` row, so a failing file leaves no trace.
    """
    migrations_dir = migrations_dir or MIGRATIONS_DIR
    migration_files = sorted(migrations_dir.glob("*.sql"), key=_migration_version)

    result = MigrationResult()

    with db.read() as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_version ("
            "  version INTEGER PRIMARY KEY,"
            "  applied_at TEXT DEFAULT (datetime('now'))"
            ")"
        )
        row = conn.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
        current_version: int = row["v"] or 0

        for migration_file in migration_files:
            version = _migration_version(migration_file)
            migration_name = migration_file.stem

            if version <= current_version:
                logger.debug("migration_skipped", name=migration_name)
                result.skipped.append(migration_name)
                continue

            sql = migration_file.read_text()
            script = (
                "BEGIN IMMEDIATE;\n"
                f"{sql}\n"
                f"INSERT INTO schema_version (version) VALUES ({version});\n"
                "COMMIT;"
            )
            try:
                conn.executescript(script)
            except sqlite3.Error as exc:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise MigrationError(
                    f"Migration {migration_name} failed: {exc}",
                    context={"name": migration_name},
                ) from exc

            logger.info("migration_applied", name=migration_name, version=version)
            result.applied.append(migration_name)
            current_version = version

    return result


def check_connection(db: Database) -> bool:
    """Check if the database answers a trivial query."""
    try:
        with db.read() as conn:
            conn.execute("SELECT 1")
        return True
    except DatabaseError as exc:
        logger.warning("database_health_check_failed", error=str(exc))
        return False
