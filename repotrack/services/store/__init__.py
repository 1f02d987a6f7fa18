"""Storage backends for projects, repositories and dependency edges."""

from .base import GraphStore
from .memory import InMemoryGraphStore

__all__ = ["GraphStore", "InMemoryGraphStore"]
