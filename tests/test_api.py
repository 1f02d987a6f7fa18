import time
import uuid

import pytest
from fastapi.testclient import TestClient

from repotrack.api.repositories import limiter
from repotrack.config import Settings
from repotrack.errors import IndexingServiceError
from repotrack.main import create_app
from repotrack.services.store.memory import InMemoryGraphStore
from tests.conftest import FakeIndexingClient, RecordingBroadcaster


@pytest.fixture
def fake_indexer():
    return FakeIndexingClient()


@pytest.fixture
def client(fake_indexer):
    limiter.reset()
    app = create_app(
        settings=Settings(),
        store=InMemoryGraphStore(),
        indexing_client=fake_indexer,
        broadcaster=RecordingBroadcaster()
    )
    with TestClient(app) as test_client:
        yield test_client
    limiter.reset()


def create_project(client, name="acme"):
    response = client.post("/api/projects", json={"name": name})
    assert response.status_code == 200
    return response.json()


def create_repo(client, project_id, name, repo_type="WEB", url=None):
    return client.post("/api/repositories", json={
        "projectId": project_id,
        "name": name,
        "url": url or f"https://github.com/acme/{name}",
        "type": repo_type
    })


def wait_for_status(client, repo_id, status, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        current = client.get(f"/api/repositories/{repo_id}").json()["status"]
        if current == status or time.monotonic() > deadline:
            return current
        time.sleep(0.01)


def test_root_and_health(client):
    assert client.get("/").json()["message"] == "Repository Tracking API"

    health = client.get("/health").json()
    assert health["status"] == "healthy"


def test_create_and_list_projects(client):
    project = create_project(client)

    projects = client.get("/api/projects").json()
    assert [p["id"] for p in projects] == [project["id"]]


def test_create_server_repository_starts_pending(client, fake_indexer):
    project = create_project(client)

    response = create_repo(client, project["id"], "api", "SERVER")

    assert response.status_code == 200
    repo = response.json()
    assert repo["status"] == "PENDING"
    assert wait_for_status(client, repo["id"], "INDEXED") == "INDEXED"
    assert len(fake_indexer.calls_for(repo["id"])) == 1


def test_create_web_repository_stays_untracked(client, fake_indexer):
    project = create_project(client)

    repo = create_repo(client, project["id"], "web").json()

    assert repo["status"] == "UNTRACKED"
    assert fake_indexer.calls == []


def test_create_repository_rejects_bad_input(client):
    project = create_project(client)

    assert create_repo(client, project["id"], "web", url="github.com/acme/web").status_code == 400
    assert create_repo(client, "not-a-uuid", "web").status_code == 400
    assert create_repo(client, str(uuid.uuid4()), "web").status_code == 404
    assert create_repo(client, project["id"], "web", repo_type="DESKTOP").status_code == 422


def test_dependency_lifecycle(client, fake_indexer):
    project = create_project(client)
    api = create_repo(client, project["id"], "api", "SERVER").json()
    web = create_repo(client, project["id"], "web").json()
    edge = {"sourceRepoId": api["id"], "targetRepoId": web["id"]}

    response = client.post("/api/dependencies", json=edge)
    assert response.status_code == 200
    assert response.json()["target_repo_id"] == web["id"]
    assert wait_for_status(client, web["id"], "INDEXED") == "INDEXED"

    listed = client.get(f"/api/projects/{project['id']}/dependencies").json()
    assert len(listed) == 1

    response = client.request("DELETE", "/api/dependencies", json=edge)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"/api/repositories/{web['id']}").json()["status"] == "UNTRACKED"


def test_dependency_errors(client):
    project = create_project(client)
    api = create_repo(client, project["id"], "api", "SERVER").json()
    web = create_repo(client, project["id"], "web").json()

    missing = {"sourceRepoId": api["id"], "targetRepoId": str(uuid.uuid4())}
    assert client.post("/api/dependencies", json=missing).status_code == 404

    self_edge = {"sourceRepoId": web["id"], "targetRepoId": web["id"]}
    assert client.post("/api/dependencies", json=self_edge).status_code == 400

    malformed = {"sourceRepoId": "123", "targetRepoId": web["id"]}
    assert client.post("/api/dependencies", json=malformed).status_code == 400

    absent = {"sourceRepoId": api["id"], "targetRepoId": web["id"]}
    assert client.request("DELETE", "/api/dependencies", json=absent).status_code == 404


def test_get_unknown_repository(client):
    assert client.get(f"/api/repositories/{uuid.uuid4()}").status_code == 404
    assert client.get("/api/repositories/999").status_code == 400


def test_list_repositories_for_project(client):
    project = create_project(client)
    create_repo(client, project["id"], "api", "SERVER")
    create_repo(client, project["id"], "web")

    repos = client.get(f"/api/projects/{project['id']}/repositories").json()

    assert [r["name"] for r in repos] == ["api", "web"]
    assert client.get(f"/api/projects/{uuid.uuid4()}/repositories").status_code == 404


def test_reindex(client):
    project = create_project(client)
    web = create_repo(client, project["id"], "web").json()

    response = client.post(f"/api/repositories/{web['id']}/reindex")

    assert response.status_code == 200
    assert response.json()["status"] == "untracked"


def test_reindex_is_rate_limited(client):
    project = create_project(client)
    web = create_repo(client, project["id"], "web").json()

    codes = [client.post(f"/api/repositories/{web['id']}/reindex").status_code for _ in range(11)]

    assert codes[:10] == [200] * 10
    assert codes[10] == 429


def test_graph_proxies_indexing_server(client, fake_indexer):
    project_id = str(uuid.uuid4())
    fake_indexer.graph = {"nodes": [{"id": "api"}], "edges": []}

    response = client.get("/api/graph", params={"projectId": project_id})

    assert response.status_code == 200
    assert response.json() == {"nodes": [{"id": "api"}], "edges": []}


def test_graph_falls_back_to_empty_graph(client, fake_indexer):
    fake_indexer.graph_error = IndexingServiceError("Indexing server returned 502", status_code=502)

    response = client.get("/api/graph", params={"projectId": str(uuid.uuid4())})

    assert response.status_code == 200
    assert response.json() == {"nodes": [], "edges": []}


def test_graph_with_malformed_nodes_falls_back_to_empty_graph(client, fake_indexer):
    fake_indexer.graph = {"nodes": ["api", "web"], "edges": []}

    response = client.get("/api/graph", params={"projectId": str(uuid.uuid4())})

    assert response.status_code == 200
    assert response.json() == {"nodes": [], "edges": []}


def test_graph_requires_project_id(client):
    assert client.get("/api/graph").status_code == 400
