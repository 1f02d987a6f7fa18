"""Project management API endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from repotrack.api.deps import get_indexing_client, get_orchestrator, require_identifier
from repotrack.errors import NotFoundError
from repotrack.models.project import Project, ProjectCreate
from repotrack.models.repository import Dependency, GraphData, Repository
from repotrack.services.indexing.client import IndexingClient
from repotrack.services.orchestrator import StatusOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["projects"])


@router.post("/projects", response_model=Project)
async def create_project(
    request: ProjectCreate,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """
    Create a new project.

    Args:
        request: ProjectCreate with the display name

    Returns:
        The created Project
    """
    try:
        return orchestrator.create_project(request.name)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create project: {str(e)}")


@router.get("/projects", response_model=List[Project])
async def list_projects(orchestrator: StatusOrchestrator = Depends(get_orchestrator)):
    """List all projects, newest first."""
    try:
        return orchestrator.list_projects()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list projects: {str(e)}")


@router.get("/projects/{project_id}/repositories", response_model=List[Repository])
async def list_project_repositories(
    project_id: str,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """List the repositories of a project with their current status."""
    require_identifier(project_id, "project ID")
    try:
        return orchestrator.list_repositories(project_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list repositories: {str(e)}")


@router.get("/projects/{project_id}/dependencies", response_model=List[Dependency])
async def list_project_dependencies(
    project_id: str,
    orchestrator: StatusOrchestrator = Depends(get_orchestrator)
):
    """List the dependency edges recorded for a project."""
    require_identifier(project_id, "project ID")
    try:
        return orchestrator.list_dependencies(project_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list dependencies: {str(e)}")


@router.get("/graph", response_model=GraphData)
async def get_graph(
    projectId: Optional[str] = None,
    indexing_client: IndexingClient = Depends(get_indexing_client)
):
    """
    Get the dependency graph built by the indexing server.

    The indexing server is often unavailable; any failure yields an empty graph.

    Args:
        projectId: Project identifier

    Returns:
        GraphData with nodes and edges
    """
    if not projectId:
        raise HTTPException(status_code=400, detail="projectId is required")
    require_identifier(projectId, "project ID")

    try:
        data = await indexing_client.fetch_graph_data(projectId)
        return GraphData(**data)
    except Exception as e:
        logger.error(f"[{projectId}] Failed to fetch graph from indexing server: {e}")
        return GraphData(nodes=[], edges=[])
