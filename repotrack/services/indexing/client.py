"""
Service for submitting repositories to the external indexing server.

The indexing server is unreliable, so every submission is retried with
exponential backoff. Client errors (4xx) and unexpected success statuses
are never retried.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

import requests

from repotrack.errors import IndexingServiceError
from repotrack.utils.validation import is_valid_identifier, is_valid_source_locator

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
REQUEST_TIMEOUT_SECONDS = 30


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    PERMANENT_FAILURE = "permanent_failure"
    TRANSIENT_FAILURE_EXHAUSTED = "transient_failure_exhausted"


@dataclass(frozen=True)
class IndexingOutcome:
    """Result of one submission, after all retries."""

    kind: OutcomeKind
    reason: Optional[str] = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @classmethod
    def success(cls, attempts: int) -> "IndexingOutcome":
        return cls(OutcomeKind.SUCCESS, None, attempts)

    @classmethod
    def permanent_failure(cls, reason: str, attempts: int) -> "IndexingOutcome":
        return cls(OutcomeKind.PERMANENT_FAILURE, reason, attempts)

    @classmethod
    def exhausted(cls, reason: str, attempts: int) -> "IndexingOutcome":
        return cls(OutcomeKind.TRANSIENT_FAILURE_EXHAUSTED, reason, attempts)


def _error_message(response: requests.Response) -> str:
    """Pull the optional `message` field out of an error body."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text or response.reason or f"HTTP {response.status_code}"


class IndexingClient:
    """
    Sends repositories to the external indexing server.

    The HTTP calls are blocking `requests` calls executed in a worker thread
    so callers on the event loop are never blocked.
    """

    def __init__(
        self,
        base_url: str,
        max_attempts: int = MAX_ATTEMPTS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize indexing client.

        Args:
            base_url: Base URL of the indexing server (no trailing slash)
            max_attempts: Total tries per submission, including the first
            timeout: Per-request timeout in seconds
            sleep: Coroutine used for backoff waits (replaceable in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._sleep = sleep

    @staticmethod
    def backoff_delay(attempt: int) -> float:
        """Seconds to wait after a failed try: 1, 2, 4, ..."""
        return float(2 ** (attempt - 1))

    def _post(self, endpoint: str, payload: Dict) -> requests.Response:
        return requests.post(
            endpoint,
            json=payload,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"}
        )

    async def submit(self, project_id: str, repo_url: str, repo_id: str) -> IndexingOutcome:
        """
        Submit a repository for indexing.

        Args:
            project_id: Project UUID
            repo_url: Clone URL or absolute path of the repository
            repo_id: Repository UUID (used for logging only)

        Returns:
            IndexingOutcome describing success, a permanent failure, or
            transient failures that exhausted every retry
        """
        if not is_valid_identifier(project_id):
            logger.error(f"[{repo_id}] Refusing submission: invalid project ID '{project_id}'")
            return IndexingOutcome.permanent_failure("Invalid project ID format", attempts=0)

        if not is_valid_source_locator(repo_url):
            logger.error(f"[{repo_id}] Refusing submission: invalid repository URL '{repo_url}'")
            return IndexingOutcome.permanent_failure("Invalid Git URL format", attempts=0)

        endpoint = f"{self.base_url}/add-repository"
        payload = {"project_id": project_id, "repo_url": repo_url}
        logger.info(f"[{repo_id}] Sending {repo_url} to indexing server at {endpoint}")

        last_error = "Max retries exceeded"

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await asyncio.to_thread(self._post, endpoint, payload)
                status_code = response.status_code

                if status_code in (200, 201):
                    logger.info(f"[{repo_id}] Indexing server accepted repository (attempt {attempt})")
                    return IndexingOutcome.success(attempts=attempt)

                if 200 <= status_code < 300:
                    logger.warning(f"[{repo_id}] Unexpected status code: {status_code}")
                    return IndexingOutcome.permanent_failure(
                        f"Unexpected status: {status_code}", attempts=attempt
                    )

                if 400 <= status_code < 500:
                    message = _error_message(response)
                    logger.error(f"[{repo_id}] Client error ({status_code}): {message}")
                    return IndexingOutcome.permanent_failure(
                        f"Client error: {message}", attempts=attempt
                    )

                if status_code >= 500:
                    last_error = _error_message(response)
                    logger.warning(
                        f"[{repo_id}] Server error ({status_code}), "
                        f"attempt {attempt}/{self.max_attempts}"
                    )
                else:
                    last_error = f"Unexpected status: {status_code}"
                    logger.error(f"[{repo_id}] Unknown error: {last_error}")

            except (requests.ConnectionError, requests.Timeout) as e:
                last_error = str(e) or e.__class__.__name__
                logger.warning(
                    f"[{repo_id}] Network error ({e.__class__.__name__}), "
                    f"attempt {attempt}/{self.max_attempts}"
                )

            except Exception as e:
                last_error = str(e) or e.__class__.__name__
                logger.error(f"[{repo_id}] Unknown error: {last_error}", exc_info=True)

            if attempt < self.max_attempts:
                delay = self.backoff_delay(attempt)
                logger.info(f"[{repo_id}] Retrying in {delay:.0f}s...")
                await self._sleep(delay)

        logger.error(f"[{repo_id}] Failed to send repository after {self.max_attempts} attempts")
        return IndexingOutcome.exhausted(last_error, attempts=self.max_attempts)

    async def fetch_graph_data(self, project_id: str) -> Dict:
        """
        Fetch the dependency graph the indexing server built for a project.

        Args:
            project_id: Project UUID

        Returns:
            Dictionary with `nodes` and `edges` lists

        Raises:
            IndexingServiceError: If the server is unreachable or answers with an error
        """
        endpoint = f"{self.base_url}/graph-data"
        logger.info(f"Fetching graph data from: {endpoint}?project_id={project_id}")

        try:
            response = await asyncio.to_thread(
                requests.get,
                endpoint,
                params={"project_id": project_id},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise IndexingServiceError(f"Indexing server unreachable: {e}") from e

        if not response.ok:
            raise IndexingServiceError(
                f"Indexing server returned {response.status_code}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise IndexingServiceError("Indexing server returned invalid JSON") from e

        if not isinstance(data, dict):
            raise IndexingServiceError("Indexing server returned an unexpected graph payload")

        graph = {
            "nodes": data.get("nodes") or [],
            "edges": data.get("edges") or []
        }
        for key, items in graph.items():
            if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
                raise IndexingServiceError(f"Indexing server returned malformed graph {key}")

        return graph
