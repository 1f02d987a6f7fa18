"""Shared fakes and fixtures."""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from repotrack.services.broadcaster import Broadcaster
from repotrack.services.indexing.client import IndexingOutcome
from repotrack.services.orchestrator import StatusOrchestrator
from repotrack.services.store.memory import InMemoryGraphStore


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (no external dependencies)"
    )


class RecordingBroadcaster(Broadcaster):
    """Keeps every emitted event; optionally mirrors them into a shared timeline."""

    def __init__(self, timeline: Optional[List[Tuple]] = None):
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.timeline = timeline

    async def emit(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))
        if self.timeline is not None:
            repository = payload["repository"]
            self.timeline.append(("emit", event, repository["id"], repository["status"]))

    def statuses_for(self, repo_id: str) -> List[str]:
        return [
            payload["repository"]["status"]
            for _, payload in self.events
            if payload["repository"]["id"] == repo_id
        ]


class FakeIndexingClient:
    """
    Stands in for IndexingClient.

    Outcomes can be set per repository; `hold(repo_id)` returns an event the
    submission waits on before resolving.
    """

    def __init__(self, timeline: Optional[List[Tuple]] = None):
        self.calls: List[Tuple[str, str, str]] = []
        self.outcomes: Dict[str, Any] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.timeline = timeline
        self.graph: Dict[str, list] = {"nodes": [], "edges": []}
        self.graph_error: Optional[Exception] = None

    def set_outcome(self, repo_id: str, outcome) -> None:
        self.outcomes[repo_id] = outcome

    def hold(self, repo_id: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[repo_id] = gate
        return gate

    def calls_for(self, repo_id: str) -> List[Tuple[str, str, str]]:
        return [call for call in self.calls if call[2] == repo_id]

    async def submit(self, project_id: str, repo_url: str, repo_id: str) -> IndexingOutcome:
        self.calls.append((project_id, repo_url, repo_id))
        if self.timeline is not None:
            self.timeline.append(("submit", repo_id))

        gate = self.gates.get(repo_id)
        if gate is not None:
            await gate.wait()

        outcome = self.outcomes.get(repo_id, IndexingOutcome.success(attempts=1))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def fetch_graph_data(self, project_id: str) -> Dict:
        if self.graph_error is not None:
            raise self.graph_error
        return self.graph


@pytest.fixture
def timeline():
    return []


@pytest.fixture
def store():
    return InMemoryGraphStore()


@pytest.fixture
def indexing_client(timeline):
    return FakeIndexingClient(timeline)


@pytest.fixture
def broadcaster(timeline):
    return RecordingBroadcaster(timeline)


@pytest.fixture
def orchestrator(store, indexing_client, broadcaster):
    return StatusOrchestrator(store, indexing_client, broadcaster)


@pytest.fixture
def project(store):
    return store.create_project("acme")
