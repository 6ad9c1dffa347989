"""Apply the DMS SQL migrations in order.

Each ``NNNN_name.sql`` file under ``migrations/`` runs once; applied file
names are recorded in ``schema_migrations``.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

__all__ = [
    "MIGRATIONS_DIR",
    "discover_migrations",
    "applied_migrations",
    "run_migrations",
    "pending_migrations",
    "describe",
]

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

_MIGRATION_NAME = re.compile(r"^\d{4}_[a-z0-9_]+\.sql$")

_CREATE_BOOKKEEPING = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename VARCHAR(255) PRIMARY KEY,
    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


def discover_migrations(directory: Optional[Path] = None) -> list[Path]:
    """Migration files sorted by their numeric prefix."""

    directory = directory or MIGRATIONS_DIR
    return sorted(
        path for path in directory.glob("*.sql") if _MIGRATION_NAME.match(path.name)
    )


def applied_migrations(conn: Connection) -> set[str]:
    conn.execute(text(_CREATE_BOOKKEEPING))
    rows = conn.execute(text("SELECT filename FROM schema_migrations"))
    return {row[0] for row in rows}


def _execute_script(conn: Connection, sql: str) -> None:
    # 파일 전체를 한 번에 실행 (DO $$ 블록 포함)
    conn.exec_driver_sql(sql, execution_options={"no_parameters": True})


def run_migrations(
    engine: Engine,
    directory: Optional[Path] = None,
    *,
    dry_run: bool = False,
) -> list[str]:
    """Apply pending migrations in a single transaction.

    Returns the names of the files applied (or, with ``dry_run``, the ones
    that would be applied).
    """

    files = discover_migrations(directory)
    if not files:
        logger.info("migrations_none_found", directory=str(directory or MIGRATIONS_DIR))
        return []

    pending: list[str] = []
    with engine.begin() as conn:
        done = applied_migrations(conn)
        for path in files:
            if path.name in done:
                logger.debug("migration_skipped", migration=path.name)
                continue
            pending.append(path.name)
            if dry_run:
                continue
            logger.info("migration_applying", migration=path.name)
            _execute_script(conn, path.read_text(encoding="utf-8"))
            conn.execute(
                text("INSERT INTO schema_migrations (filename) VALUES (:filename)"),
                {"filename": path.name},
            )
    logger.info("migrations_complete", applied=len(pending), dry_run=dry_run)
    return pending


def pending_migrations(engine: Engine, directory: Optional[Path] = None) -> list[str]:
    return run_migrations(engine, directory, dry_run=True)


def describe(names: Iterable[str]) -> str:
    names = list(names)
    return ", ".join(names) if names else "none"
