"""Pydantic models for project operations."""

from datetime import datetime
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


class Project(BaseModel):
    id: str
    name: str
    created_at: datetime
