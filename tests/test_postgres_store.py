"""PostgresGraphStore against a scripted fake pool (no database needed)."""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

import psycopg
import pytest

from repotrack.errors import InvalidInputError, NotFoundError
from repotrack.models.repository import RepositoryStatus, RepositoryType
from repotrack.services.store.postgres import PostgresGraphStore

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)
PROJECT_ID = uuid.uuid4()


class FakeCursor:
    def __init__(self, rows):
        self.rows = list(rows)
        self.executed = []
        self.rowcount = 0
        self.error = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))
        if self.error is not None:
            raise self.error

    def fetchone(self):
        return self.rows.pop(0)

    def fetchall(self):
        return self.rows.pop(0)


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor

    def execute(self, sql, params=None):
        self._cursor.execute(sql, params)


class FakePool:
    def __init__(self, cursor):
        self.conn = FakeConnection(cursor)

    @contextmanager
    def connection(self):
        yield self.conn


def repo_row(repo_id, repo_type="WEB", status="UNTRACKED"):
    return (repo_id, PROJECT_ID, "web", "https://github.com/acme/web", repo_type, status, None, NOW, NOW)


def make_store(rows):
    cursor = FakeCursor(rows)
    return PostgresGraphStore("postgresql://unused", db_pool=FakePool(cursor)), cursor


def test_add_server_repository_inserts_pending():
    repo_id = uuid.uuid4()
    store, cursor = make_store([repo_row(repo_id, "SERVER", "PENDING")])

    repo = store.add_repository(str(PROJECT_ID), "api", "https://github.com/acme/api", RepositoryType.SERVER)

    assert repo.id == str(repo_id)
    assert repo.project_id == str(PROJECT_ID)
    assert repo.status == RepositoryStatus.PENDING
    sql, params = cursor.executed[0]
    assert sql.startswith("INSERT INTO repositories")
    assert params[-2:] == ("SERVER", "PENDING")


def test_add_repository_to_unknown_project():
    store, cursor = make_store([])
    cursor.error = psycopg.errors.ForeignKeyViolation("missing project")

    with pytest.raises(NotFoundError):
        store.add_repository(str(PROJECT_ID), "web", "https://github.com/acme/web", RepositoryType.WEB)


def test_get_missing_repository():
    store, _ = make_store([None])

    with pytest.raises(NotFoundError):
        store.get_repository(str(uuid.uuid4()))


def test_duplicate_dependency_returns_existing_edge():
    source, target, edge_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    store, cursor = make_store([
        repo_row(source, "SERVER", "INDEXED"),
        repo_row(target),
        None,
        (edge_id, source, target, NOW),
    ])

    dependency, created = store.add_dependency(str(source), str(target))

    assert created is False
    assert dependency.id == str(edge_id)
    assert "ON CONFLICT (source_repo_id, target_repo_id) DO NOTHING" in cursor.executed[2][0]


def test_self_dependency_rejected():
    repo_id = uuid.uuid4()
    store, _ = make_store([repo_row(repo_id), repo_row(repo_id)])

    with pytest.raises(InvalidInputError):
        store.add_dependency(str(repo_id), str(repo_id))


def test_remove_missing_dependency():
    store, cursor = make_store([])
    cursor.rowcount = 0

    with pytest.raises(NotFoundError):
        store.remove_dependency(str(uuid.uuid4()), str(uuid.uuid4()))


def test_incoming_degree():
    store, cursor = make_store([(2,)])

    assert store.incoming_degree(str(uuid.uuid4())) == 2
    assert cursor.executed[0][0].startswith("SELECT COUNT(*) FROM dependencies")


def test_update_status_of_missing_repository():
    store, _ = make_store([None])

    with pytest.raises(NotFoundError):
        store.update_repository_status(str(uuid.uuid4()), RepositoryStatus.INDEXED)
