"""Request-scoped accessors for the services wired up in `main.create_app`."""

from fastapi import HTTPException, Request

from repotrack.services.indexing.client import IndexingClient
from repotrack.services.orchestrator import StatusOrchestrator
from repotrack.utils.validation import is_valid_identifier


def get_orchestrator(request: Request) -> StatusOrchestrator:
    return request.app.state.orchestrator


def get_indexing_client(request: Request) -> IndexingClient:
    return request.app.state.indexing_client


def require_identifier(value: str, field: str) -> str:
    """Reject ids that are not UUIDs before they reach the store."""
    if not is_valid_identifier(value):
        raise HTTPException(status_code=400, detail=f"Invalid {field}: must be a UUID")
    return value
