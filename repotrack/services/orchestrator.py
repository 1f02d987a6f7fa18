"""
Repository status lifecycle.

Decides when a repository is sent for indexing, applies the indexing outcome
to its status, and reverts repositories that lose every incoming dependency.

Status transitions for one repository are serialized by a per-repository
lock, and every submission carries the repository's generation number at
the time it started. The generation moves whenever a newer submission starts
or the repository is orphaned, so a submission that resolves late cannot
overwrite a newer state.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Set

from repotrack.errors import NotFoundError
from repotrack.models.project import Project
from repotrack.models.repository import (
    Dependency,
    ReindexResponse,
    Repository,
    RepositoryStatus,
    RepositoryType,
)
from repotrack.services.broadcaster import REPOSITORY_ADDED, REPOSITORY_UPDATED, Broadcaster
from repotrack.services.indexing.client import IndexingClient, IndexingOutcome
from repotrack.services.store.base import GraphStore

logger = logging.getLogger(__name__)


class StatusOrchestrator:
    """Coordinates the graph store, the indexing client and the broadcaster."""

    def __init__(self, store: GraphStore, indexing_client: IndexingClient, broadcaster: Broadcaster):
        """
        Args:
            store: Graph store holding projects, repositories and edges
            indexing_client: Client for the external indexing service
            broadcaster: Receives an event after every committed status change
        """
        self.store = store
        self.indexing_client = indexing_client
        self.broadcaster = broadcaster
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._generations: Dict[str, int] = defaultdict(int)
        self._tasks: Set[asyncio.Task] = set()

    # Projects and read paths

    def create_project(self, name: str) -> Project:
        project = self.store.create_project(name)
        logger.info(f"[{project.id}] Project created: {name}")
        return project

    def list_projects(self) -> List[Project]:
        return self.store.list_projects()

    def get_project(self, project_id: str) -> Project:
        return self.store.get_project(project_id)

    def get_repository(self, repo_id: str) -> Repository:
        return self.store.get_repository(repo_id)

    def list_repositories(self, project_id: str) -> List[Repository]:
        return self.store.list_repositories(project_id)

    def list_dependencies(self, project_id: str) -> List[Dependency]:
        return self.store.list_dependencies(project_id)

    @property
    def in_flight(self) -> int:
        """Number of indexing submissions still running."""
        return len(self._tasks)

    # Graph mutations

    async def add_repository(self, project_id: str, name: str, url: str, repo_type: RepositoryType) -> Repository:
        """
        Create a repository.

        Servers start PENDING and are submitted right away. Other repositories
        start UNTRACKED and wait until something depends on them.
        """
        repo = self.store.add_repository(project_id, name, url, repo_type)
        logger.info(f"[{repo.id}] Repository added: {name} ({repo.status.value})")

        async with self._locks[repo.id]:
            await self._broadcast(REPOSITORY_ADDED, repo)
            if repo.is_server:
                logger.info(f"[{repo.id}] Sending SERVER repository to indexing server")
                self._start_indexing(repo)
            else:
                logger.info(
                    f"[{repo.id}] Skipping indexing for {repo.type.value} repository "
                    f"(status: UNTRACKED). Waiting for a dependency."
                )

        return repo

    async def add_dependency(self, source_id: str, target_id: str) -> Dependency:
        """
        Record that source depends on target and start indexing the target
        if it was untracked. Re-adding an existing edge changes nothing.
        """
        dependency, created = self.store.add_dependency(source_id, target_id)
        if not created:
            logger.info(f"[{target_id}] Dependency {source_id} -> {target_id} already exists")
            return dependency

        logger.info(f"[{target_id}] Dependency added: {source_id} -> {target_id}")

        async with self._locks[target_id]:
            target = self.store.get_repository(target_id)
            if target.status != RepositoryStatus.UNTRACKED:
                return dependency

            # The edge may have been removed while waiting for the lock
            if self.store.incoming_degree(target_id) == 0:
                return dependency

            logger.info(f"[{target_id}] Connection established. Sending {target.name} to indexing server")
            pending = self.store.update_repository_status(target_id, RepositoryStatus.PENDING)
            await self._broadcast(REPOSITORY_UPDATED, pending)
            self._start_indexing(pending)

        return dependency

    async def remove_dependency(self, source_id: str, target_id: str) -> None:
        """Remove an edge and revert the target to UNTRACKED if it is now orphaned."""
        self.store.remove_dependency(source_id, target_id)
        logger.info(f"[{target_id}] Removed dependency {source_id} -> {target_id}")

        async with self._locks[target_id]:
            if self.store.incoming_degree(target_id) > 0:
                return

            target = self.store.get_repository(target_id)
            if target.is_server:
                return

            # Any submission still running for this repository is now stale
            self._generations[target_id] += 1

            if target.status == RepositoryStatus.UNTRACKED:
                return

            logger.info(f"[{target_id}] Repository {target.name} is now orphaned. Reverting to UNTRACKED.")
            untracked = self.store.update_repository_status(target_id, RepositoryStatus.UNTRACKED)
            await self._broadcast(REPOSITORY_UPDATED, untracked)

    async def reindex_repository(self, repo_id: str) -> ReindexResponse:
        """
        Send a repository for indexing again, e.g. after a failure.

        Only servers and repositories that something depends on are indexed.
        """
        # Unknown ids raise here, before a lock is created for them
        self.store.get_repository(repo_id)

        async with self._locks[repo_id]:
            repo = self.store.get_repository(repo_id)

            if repo.status == RepositoryStatus.PENDING:
                return ReindexResponse(
                    status="already_pending",
                    message="Repository is currently being indexed. Please wait for it to complete.",
                    repository=repo
                )

            if not repo.is_server and self.store.incoming_degree(repo_id) == 0:
                return ReindexResponse(
                    status="untracked",
                    message="Repository has no dependents. Connect it to another repository first.",
                    repository=repo
                )

            logger.info(f"[{repo_id}] Re-indexing requested (was {repo.status.value})")
            pending = self.store.update_repository_status(repo_id, RepositoryStatus.PENDING)
            await self._broadcast(REPOSITORY_UPDATED, pending)
            self._start_indexing(pending)

        return ReindexResponse(status="started", message="Re-indexing started.", repository=pending)

    # Background submissions

    def _start_indexing(self, repo: Repository) -> asyncio.Task:
        """Spawn a detached submission. Callers hold the repository lock."""
        self._generations[repo.id] += 1
        generation = self._generations[repo.id]

        task = asyncio.create_task(
            self._run_indexing(repo, generation),
            name=f"index-{repo.id}-{generation}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Indexing task {task.get_name()} crashed: {error}", exc_info=error)

    async def _run_indexing(self, repo: Repository, generation: int) -> None:
        try:
            outcome = await self.indexing_client.submit(repo.project_id, repo.url, repo.id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{repo.id}] Unexpected error sending repository: {e}", exc_info=True)
            outcome = IndexingOutcome.permanent_failure(f"Unexpected error: {e}", attempts=0)

        await self._apply_outcome(repo.id, generation, outcome)

    async def _apply_outcome(self, repo_id: str, generation: int, outcome: IndexingOutcome) -> None:
        async with self._locks[repo_id]:
            if self._generations[repo_id] != generation:
                logger.info(
                    f"[{repo_id}] Discarding stale indexing result "
                    f"({outcome.kind.value}, generation {generation})"
                )
                return

            if outcome.succeeded:
                status, error_message = RepositoryStatus.INDEXED, None
                logger.info(f"[{repo_id}] Indexing server accepted repository")
            else:
                status, error_message = RepositoryStatus.FAILED, outcome.reason
                logger.error(f"[{repo_id}] Failed to index repository: {outcome.reason}")

            try:
                updated = self.store.update_repository_status(repo_id, status, error_message)
            except NotFoundError:
                logger.warning(f"[{repo_id}] Repository disappeared before indexing finished")
                return

            await self._broadcast(REPOSITORY_UPDATED, updated)

    async def _broadcast(self, event: str, repo: Repository) -> None:
        try:
            await self.broadcaster.emit(event, {
                "projectId": repo.project_id,
                "repository": repo.model_dump(mode="json")
            })
        except Exception as e:
            # The transition is already committed
            logger.warning(f"[{repo.id}] Failed to broadcast {event}: {e}", exc_info=True)

    async def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Wait until every in-flight submission (including ones they trigger) has finished."""
        while self._tasks:
            await asyncio.wait_for(
                asyncio.gather(*list(self._tasks), return_exceptions=True),
                timeout=timeout
            )

    async def shutdown(self) -> None:
        """Cancel in-flight submissions."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info(f"Cancelling {len(tasks)} in-flight indexing submission(s)")
            await asyncio.gather(*tasks, return_exceptions=True)
