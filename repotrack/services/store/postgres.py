"""PostgreSQL graph store backed by a psycopg connection pool."""

import logging
import uuid
from typing import List, Optional, Tuple

import psycopg
from psycopg_pool import ConnectionPool

from repotrack.errors import InvalidInputError, NotFoundError
from repotrack.models.project import Project
from repotrack.models.repository import (
    Dependency,
    Repository,
    RepositoryStatus,
    RepositoryType,
    initial_status,
)
from repotrack.services.store.base import GraphStore

logger = logging.getLogger(__name__)

_REPOSITORY_COLUMNS = "id, project_id, name, url, type, status, error_message, created_at, updated_at"
_DEPENDENCY_COLUMNS = "id, source_repo_id, target_repo_id, created_at"


def _project_from_row(row) -> Project:
    return Project(id=str(row[0]), name=row[1], created_at=row[2])


def _repository_from_row(row) -> Repository:
    return Repository(
        id=str(row[0]),
        project_id=str(row[1]),
        name=row[2],
        url=row[3],
        type=RepositoryType(row[4]),
        status=RepositoryStatus(row[5]),
        error_message=row[6],
        created_at=row[7],
        updated_at=row[8]
    )


def _dependency_from_row(row) -> Dependency:
    return Dependency(
        id=str(row[0]),
        source_repo_id=str(row[1]),
        target_repo_id=str(row[2]),
        created_at=row[3]
    )


class PostgresGraphStore(GraphStore):
    """
    Graph store persisted in PostgreSQL.

    The schema is created by `database/migrations/0000_initial_schema.sql`.
    Ids are validated by the API before they reach this class, so malformed
    UUIDs never hit the database.
    """

    def __init__(self, database_url: str, db_pool: Optional[ConnectionPool] = None):
        """
        Initialize store with database connection pool.

        Args:
            database_url: PostgreSQL connection URL
            db_pool: Pre-built pool (a new pool is opened lazily when omitted)
        """
        self.db_pool = db_pool or ConnectionPool(database_url, open=False)

    def open(self) -> None:
        self.db_pool.open()

    def close(self) -> None:
        self.db_pool.close()

    def ping(self) -> None:
        with self.db_pool.connection() as conn:
            conn.execute("SELECT 1")

    def create_project(self, name: str) -> Project:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """INSERT INTO projects (id, name)
                       VALUES (%s, %s)
                       RETURNING id, name, created_at""",
                    (str(uuid.uuid4()), name)
                )
                return _project_from_row(cur.fetchone())

    def get_project(self, project_id: str) -> Project:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, name, created_at FROM projects WHERE id = %s",
                    (project_id,)
                )
                row = cur.fetchone()

        if not row:
            raise NotFoundError(f"Project not found: {project_id}")
        return _project_from_row(row)

    def list_projects(self) -> List[Project]:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT id, name, created_at FROM projects ORDER BY created_at DESC")
                return [_project_from_row(row) for row in cur.fetchall()]

    def add_repository(self, project_id: str, name: str, url: str, repo_type: RepositoryType) -> Repository:
        status = initial_status(repo_type)
        try:
            with self.db_pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""INSERT INTO repositories (id, project_id, name, url, type, status)
                            VALUES (%s, %s, %s, %s, %s, %s)
                            RETURNING {_REPOSITORY_COLUMNS}""",
                        (str(uuid.uuid4()), project_id, name, url, repo_type.value, status.value)
                    )
                    return _repository_from_row(cur.fetchone())
        except psycopg.errors.ForeignKeyViolation as e:
            raise NotFoundError(f"Project not found: {project_id}") from e

    def get_repository(self, repo_id: str) -> Repository:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_REPOSITORY_COLUMNS} FROM repositories WHERE id = %s",
                    (repo_id,)
                )
                row = cur.fetchone()

        if not row:
            raise NotFoundError(f"Repository not found: {repo_id}")
        return _repository_from_row(row)

    def list_repositories(self, project_id: str) -> List[Repository]:
        self.get_project(project_id)
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""SELECT {_REPOSITORY_COLUMNS} FROM repositories
                        WHERE project_id = %s
                        ORDER BY created_at""",
                    (project_id,)
                )
                return [_repository_from_row(row) for row in cur.fetchall()]

    def update_repository_status(
        self,
        repo_id: str,
        status: RepositoryStatus,
        error_message: Optional[str] = None
    ) -> Repository:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""UPDATE repositories
                        SET status = %s,
                            error_message = %s,
                            updated_at = NOW()
                        WHERE id = %s
                        RETURNING {_REPOSITORY_COLUMNS}""",
                    (status.value, error_message, repo_id)
                )
                row = cur.fetchone()

        if not row:
            raise NotFoundError(f"Repository not found: {repo_id}")
        return _repository_from_row(row)

    def add_dependency(self, source_id: str, target_id: str) -> Tuple[Dependency, bool]:
        self.get_repository(source_id)
        self.get_repository(target_id)
        if source_id == target_id:
            raise InvalidInputError("A repository cannot depend on itself")

        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                # UNIQUE (source_repo_id, target_repo_id) keeps this atomic
                cur.execute(
                    f"""INSERT INTO dependencies (id, source_repo_id, target_repo_id)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (source_repo_id, target_repo_id) DO NOTHING
                        RETURNING {_DEPENDENCY_COLUMNS}""",
                    (str(uuid.uuid4()), source_id, target_id)
                )
                inserted = cur.fetchone()
                if inserted:
                    return _dependency_from_row(inserted), True

                cur.execute(
                    f"""SELECT {_DEPENDENCY_COLUMNS} FROM dependencies
                        WHERE source_repo_id = %s AND target_repo_id = %s""",
                    (source_id, target_id)
                )
                return _dependency_from_row(cur.fetchone()), False

    def remove_dependency(self, source_id: str, target_id: str) -> None:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """DELETE FROM dependencies
                       WHERE source_repo_id = %s AND target_repo_id = %s""",
                    (source_id, target_id)
                )
                deleted = cur.rowcount

        if not deleted:
            raise NotFoundError(f"Dependency not found: {source_id} -> {target_id}")

    def incoming_degree(self, repo_id: str) -> int:
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT COUNT(*) FROM dependencies WHERE target_repo_id = %s",
                    (repo_id,)
                )
                return cur.fetchone()[0]

    def list_dependencies(self, project_id: str) -> List[Dependency]:
        self.get_project(project_id)
        with self.db_pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """SELECT d.id, d.source_repo_id, d.target_repo_id, d.created_at
                       FROM dependencies d
                       JOIN repositories r ON r.id = d.source_repo_id
                       WHERE r.project_id = %s
                       ORDER BY d.created_at""",
                    (project_id,)
                )
                return [_dependency_from_row(row) for row in cur.fetchall()]
