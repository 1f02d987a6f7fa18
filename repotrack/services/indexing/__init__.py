"""Client for the external repository indexing service."""

from .client import IndexingClient, IndexingOutcome, OutcomeKind

__all__ = ["IndexingClient", "IndexingOutcome", "OutcomeKind"]
