"""Pydantic models for repository and dependency operations."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RepositoryType(str, Enum):
    SERVER = "SERVER"
    WEB = "WEB"
    MOBILE = "MOBILE"
    LIBRARY = "LIBRARY"
    OTHER = "OTHER"


class RepositoryStatus(str, Enum):
    UNTRACKED = "UNTRACKED"
    PENDING = "PENDING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


def initial_status(repo_type: RepositoryType) -> RepositoryStatus:
    """Servers are indexed on creation; everything else waits for a dependency."""
    if repo_type == RepositoryType.SERVER:
        return RepositoryStatus.PENDING
    return RepositoryStatus.UNTRACKED


class Repository(BaseModel):
    id: str
    project_id: str
    name: str
    url: str
    type: RepositoryType
    status: RepositoryStatus
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_server(self) -> bool:
        return self.type == RepositoryType.SERVER


class Dependency(BaseModel):
    id: str
    source_repo_id: str
    target_repo_id: str
    created_at: datetime


class RepositoryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId")
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1)
    type: RepositoryType


class DependencyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_repo_id: str = Field(..., alias="sourceRepoId")
    target_repo_id: str = Field(..., alias="targetRepoId")


class ReindexResponse(BaseModel):
    status: str
    message: str
    repository: Optional[Repository] = None


class GraphData(BaseModel):
    nodes: List[Dict[str, Any]] = []
    edges: List[Dict[str, Any]] = []
