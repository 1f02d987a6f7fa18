"""Exception types shared by the store, orchestrator and API layers."""


class RepoTrackError(Exception):
    """Base class for application errors."""


class NotFoundError(RepoTrackError, LookupError):
    """A project, repository or dependency edge does not exist."""


class InvalidInputError(RepoTrackError, ValueError):
    """Caller supplied a malformed identifier, URL or edge."""


class IndexingServiceError(RepoTrackError):
    """The external indexing service could not be reached or answered with an error."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
