"""
Journal-driven SQL migrations for the PostgreSQL graph store.

Each migration is a plain `.sql` file listed in `migrations/meta/_journal.json`;
applied migrations are recorded in the `_migrations` table together with a
checksum of the SQL that was run.
"""

import hashlib
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, List

import psycopg

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class MigrationManager:
    """Applies pending migrations and reports migration status."""

    def __init__(self, database_url: str, migrations_dir: Path = MIGRATIONS_DIR):
        self.database_url = database_url
        self.migrations_dir = Path(migrations_dir)
        self.journal_file = self.migrations_dir / "meta" / "_journal.json"

    def _create_migrations_table(self, conn: psycopg.Connection) -> None:
        with conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS _migrations (
                    id SERIAL PRIMARY KEY,
                    idx INTEGER UNIQUE NOT NULL,
                    tag TEXT UNIQUE NOT NULL,
                    applied_at TIMESTAMP DEFAULT NOW(),
                    checksum TEXT,
                    execution_time_ms INTEGER
                )
            """)
            conn.commit()

    def _get_applied_migrations(self, conn: psycopg.Connection) -> List[str]:
        with conn.cursor() as cur:
            cur.execute("SELECT tag FROM _migrations ORDER BY idx")
            return [row[0] for row in cur.fetchall()]

    def load_journal(self) -> Dict[str, Any]:
        """Load the migration journal, or an empty one if none exists yet."""
        if not self.journal_file.exists():
            return {"version": "1", "dialect": "postgresql", "entries": []}

        with open(self.journal_file, 'r') as f:
            return json.load(f)

    def pending_entries(self, applied: List[str]) -> List[Dict[str, Any]]:
        """Journal entries not yet applied, in index order."""
        applied_tags = set(applied)
        journal = self.load_journal()
        pending = [entry for entry in journal["entries"] if entry["tag"] not in applied_tags]
        return sorted(pending, key=lambda entry: entry["idx"])

    def read_migration(self, tag: str) -> str:
        migration_file = self.migrations_dir / f"{tag}.sql"

        if not migration_file.exists():
            raise FileNotFoundError(f"Migration file not found: {migration_file}")

        with open(migration_file, 'r') as f:
            return f.read()

    def _apply_migration(self, conn: psycopg.Connection, entry: Dict[str, Any]) -> None:
        tag = entry["tag"]
        idx = entry["idx"]
        sql_content = self.read_migration(tag)
        checksum = hashlib.sha256(sql_content.encode("utf-8")).hexdigest()

        logger.info(f"[{idx:04d}] Applying migration: {tag}")
        started = time.monotonic()

        try:
            with conn.cursor() as cur:
                cur.execute(sql_content)
                execution_ms = int((time.monotonic() - started) * 1000)
                cur.execute(
                    """INSERT INTO _migrations (idx, tag, applied_at, checksum, execution_time_ms)
                       VALUES (%s, %s, NOW(), %s, %s)""",
                    (idx, tag, checksum, execution_ms)
                )
            conn.commit()
            logger.info(f"[{idx:04d}] Applied successfully ({execution_ms}ms)")
        except Exception as e:
            conn.rollback()
            logger.error(f"[{idx:04d}] Failed to apply migration: {e}")
            raise

    def run_migrations(self, dry_run: bool = False) -> List[str]:
        """
        Run all pending migrations.

        Args:
            dry_run: If True, only report what would be applied

        Returns:
            Tags of the pending migrations (applied unless dry_run)
        """
        with psycopg.connect(self.database_url) as conn:
            self._create_migrations_table(conn)
            pending = self.pending_entries(self._get_applied_migrations(conn))

            if not pending:
                logger.info("Database is up to date. No pending migrations.")
                return []

            logger.info(f"Found {len(pending)} pending migration(s)")
            if dry_run:
                for entry in pending:
                    logger.info(f"  [{entry['idx']:04d}] {entry['tag']} (dry run)")
                return [entry["tag"] for entry in pending]

            for entry in pending:
                self._apply_migration(conn, entry)

        return [entry["tag"] for entry in pending]

    def migration_status(self) -> Dict[str, Any]:
        """Summarize applied and pending migrations."""
        with psycopg.connect(self.database_url) as conn:
            self._create_migrations_table(conn)
            applied = self._get_applied_migrations(conn)

        journal = self.load_journal()
        return {
            "total": len(journal["entries"]),
            "applied": applied,
            "pending": [entry["tag"] for entry in self.pending_entries(applied)]
        }


def run_migrations(database_url: str = None, dry_run: bool = False) -> List[str]:
    """
    Convenience function to run migrations.

    Args:
        database_url: Database connection URL (defaults to APP_DATABASE_URL env var)
        dry_run: If True, only report what would be migrated
    """
    if database_url is None:
        database_url = os.getenv("APP_DATABASE_URL")
        if not database_url:
            raise ValueError("Database URL not provided and APP_DATABASE_URL not set")

    return MigrationManager(database_url).run_migrations(dry_run=dry_run)
