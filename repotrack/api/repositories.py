"""Repository and dependency API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from repotrack.api.deps import get_orchestrator, require_identifier
from repotrack.errors import InvalidInputError, NotFoundError
from repotrack.models.repository import (
    Dependency,
    DependencyRequest,
    ReindexResponse,
    Repository,
    RepositoryCreate,
)
from repotrack.services.orchestrator import StatusOrchestrator
from repotrack.utils.validation import is_valid_source_locator

logger = logging.getLogger(__name__)

# Initialize rate limiter for this router
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api", tags=["repositories"])


@router.post("/repositories", response_model=Repository)
async def add_repository(
    request: RepositoryCreate,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """
    Add a repository to a project.

    SERVER repositories are sent for indexing immediately (status PENDING).
    Everything else stays UNTRACKED until another repository depends on it.
    The response never waits for indexing to finish.

    Args:
        request: RepositoryCreate with projectId, name, url and type

    Returns:
        The created Repository
    """
    require_identifier(request.project_id, "project ID")
    if not is_valid_source_locator(request.url):
        raise HTTPException(
            status_code=400,
            detail="Invalid repository URL: expected http(s)://, git@ or an absolute path"
        )

    try:
        return await orchestrator.add_repository(
            request.project_id, request.name, request.url, request.type
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to add repository: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to add repository: {str(e)}")


@router.get("/repositories/{repo_id}", response_model=Repository)
async def get_repository(
    repo_id: str,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """Get a repository and its current indexing status."""
    require_identifier(repo_id, "repository ID")
    try:
        return orchestrator.get_repository(repo_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get repository: {str(e)}")


@router.post("/repositories/{repo_id}/reindex", response_model=ReindexResponse)
@limiter.limit("10/minute")  # Each call hits the indexing server
async def reindex_repository(
    request: Request,
    repo_id: str,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """
    Send a repository for indexing again.

    Args:
        repo_id: Repository identifier

    Returns:
        ReindexResponse with status 'started', 'already_pending' or 'untracked'
    """
    require_identifier(repo_id, "repository ID")
    try:
        return await orchestrator.reindex_repository(repo_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    except Exception as e:
        logger.error(f"[{repo_id}] Failed to start re-indexing: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to start re-indexing: {str(e)}")


@router.post("/dependencies", response_model=Dependency)
async def create_dependency(
    request: DependencyRequest,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """
    Record that the source repository depends on the target.

    Connecting to an UNTRACKED target sends the target for indexing.
    Re-adding an existing dependency returns the existing edge.
    """
    require_identifier(request.source_repo_id, "source repository ID")
    require_identifier(request.target_repo_id, "target repository ID")
    try:
        return await orchestrator.add_dependency(request.source_repo_id, request.target_repo_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create dependency: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create dependency: {str(e)}")


@router.delete("/dependencies")
async def delete_dependency(
    request: DependencyRequest,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """
    Remove a dependency. A non-server target left with no dependents
    reverts to UNTRACKED.
    """
    require_identifier(request.source_repo_id, "source repository ID")
    require_identifier(request.target_repo_id, "target repository ID")
    try:
        await orchestrator.remove_dependency(request.source_repo_id, request.target_repo_id)
        return {"success": True}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to remove dependency: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to remove dependency: {str(e)}")
