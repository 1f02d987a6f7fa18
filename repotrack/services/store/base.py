"""Graph store interface consumed by the status orchestrator."""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from repotrack.models.project import Project
from repotrack.models.repository import Dependency, Repository, RepositoryStatus, RepositoryType


class GraphStore(ABC):
    """
    Bookkeeping for projects, repositories and directed dependency edges.

    Every method is synchronous and runs to completion without yielding to
    the event loop. Unknown ids raise `NotFoundError`. No indexing logic
    lives here.
    """

    @abstractmethod
    def create_project(self, name: str) -> Project:
        ...

    @abstractmethod
    def get_project(self, project_id: str) -> Project:
        ...

    @abstractmethod
    def list_projects(self) -> List[Project]:
        ...

    @abstractmethod
    def add_repository(self, project_id: str, name: str, url: str, repo_type: RepositoryType) -> Repository:
        """Create a repository with its initial status (PENDING for servers, else UNTRACKED)."""

    @abstractmethod
    def get_repository(self, repo_id: str) -> Repository:
        ...

    @abstractmethod
    def list_repositories(self, project_id: str) -> List[Repository]:
        ...

    @abstractmethod
    def update_repository_status(
        self,
        repo_id: str,
        status: RepositoryStatus,
        error_message: Optional[str] = None
    ) -> Repository:
        ...

    @abstractmethod
    def add_dependency(self, source_id: str, target_id: str) -> Tuple[Dependency, bool]:
        """
        Record that source depends on target.

        Returns:
            (dependency, created); created is False when the edge already existed
        """

    @abstractmethod
    def remove_dependency(self, source_id: str, target_id: str) -> None:
        ...

    @abstractmethod
    def incoming_degree(self, repo_id: str) -> int:
        """Number of edges whose target is repo_id."""

    @abstractmethod
    def list_dependencies(self, project_id: str) -> List[Dependency]:
        ...

    def ping(self) -> None:
        """Raise if the backend is unavailable."""
