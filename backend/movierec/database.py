"""Database migration runner — uses psycopg2 (sync, simple)."""

import logging
from pathlib import Path

from movierec.core import config

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Execute all .sql files in migrations/ in name order. Idempotent.

    Returns the names of the applied files.
    """
    import psycopg2
    from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.warning("No .sql migration files found in %s", migrations_dir)
        return []

    logger.info("Connecting to postgres: %s", config.DATABASE_URL.split("@")[-1])
    try:
        conn = psycopg2.connect(config.DATABASE_URL, connect_timeout=10)
    except Exception as exc:
        logger.error("Failed to connect to postgres: %s", exc)
        raise
    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)

    applied = []
    try:
        with conn.cursor() as cursor:
            for sql_file in sql_files:
                logger.info("Applying migration: %s", sql_file.name)
                try:
                    cursor.execute(sql_file.read_text(encoding="utf-8"))
                except Exception as exc:
                    logger.error("Migration %s failed: %s", sql_file.name, exc)
                    raise
                applied.append(sql_file.name)
    finally:
        conn.close()

    logger.info("All migrations applied.")
    return applied
