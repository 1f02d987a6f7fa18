"""Repository dependency tracking and indexing orchestration service."""

__version__ = "1.0.0"
