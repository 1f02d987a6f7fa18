"""In-process graph store used by default and in tests."""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

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


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryGraphStore(GraphStore):
    """Dictionary-backed store. Records are copied in and out so callers never share state."""

    def __init__(self):
        self._projects: Dict[str, Project] = {}
        self._repositories: Dict[str, Repository] = {}
        # (source_id, target_id) -> edge
        self._edges: Dict[Tuple[str, str], Dependency] = {}

    def create_project(self, name: str) -> Project:
        project = Project(id=str(uuid.uuid4()), name=name, created_at=_now())
        self._projects[project.id] = project
        return project.model_copy()

    def get_project(self, project_id: str) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project.model_copy()

    def list_projects(self) -> List[Project]:
        return sorted(
            (p.model_copy() for p in self._projects.values()),
            key=lambda p: p.created_at,
            reverse=True
        )

    def add_repository(self, project_id: str, name: str, url: str, repo_type: RepositoryType) -> Repository:
        if project_id not in self._projects:
            raise NotFoundError(f"Project not found: {project_id}")

        now = _now()
        repo = Repository(
            id=str(uuid.uuid4()),
            project_id=project_id,
            name=name,
            url=url,
            type=repo_type,
            status=initial_status(repo_type),
            created_at=now,
            updated_at=now
        )
        self._repositories[repo.id] = repo
        return repo.model_copy()

    def _get(self, repo_id: str) -> Repository:
        repo = self._repositories.get(repo_id)
        if repo is None:
            raise NotFoundError(f"Repository not found: {repo_id}")
        return repo

    def get_repository(self, repo_id: str) -> Repository:
        return self._get(repo_id).model_copy()

    def list_repositories(self, project_id: str) -> List[Repository]:
        self.get_project(project_id)
        return sorted(
            (r.model_copy() for r in self._repositories.values() if r.project_id == project_id),
            key=lambda r: r.created_at
        )

    def update_repository_status(
        self,
        repo_id: str,
        status: RepositoryStatus,
        error_message: Optional[str] = None
    ) -> Repository:
        repo = self._get(repo_id)
        updated = repo.model_copy(update={
            "status": status,
            "error_message": error_message,
            "updated_at": _now()
        })
        self._repositories[repo_id] = updated
        return updated.model_copy()

    def add_dependency(self, source_id: str, target_id: str) -> Tuple[Dependency, bool]:
        self._get(source_id)
        self._get(target_id)
        if source_id == target_id:
            raise InvalidInputError("A repository cannot depend on itself")

        existing = self._edges.get((source_id, target_id))
        if existing is not None:
            return existing.model_copy(), False

        dependency = Dependency(
            id=str(uuid.uuid4()),
            source_repo_id=source_id,
            target_repo_id=target_id,
            created_at=_now()
        )
        self._edges[(source_id, target_id)] = dependency
        return dependency.model_copy(), True

    def remove_dependency(self, source_id: str, target_id: str) -> None:
        if self._edges.pop((source_id, target_id), None) is None:
            raise NotFoundError(f"Dependency not found: {source_id} -> {target_id}")

    def incoming_degree(self, repo_id: str) -> int:
        return sum(1 for (_, target) in self._edges if target == repo_id)

    def list_dependencies(self, project_id: str) -> List[Dependency]:
        self.get_project(project_id)
        return [
            edge.model_copy()
            for (source, _), edge in self._edges.items()
            if self._repositories[source].project_id == project_id
        ]
