import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.index_page import IndexPageRenderer
from config.models import Config, ObjectStoreConfig
from utils.errors import ConflictError, RefUpdateAmbiguousError


@pytest.fixture
def app(store, object_store):
    config = Config(object_store=ObjectStoreConfig(provider="memory"))
    return create_app(config, store=store, object_store=object_store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def new_context(client):
    response = client.post("/v1/init")
    assert response.status_code == 200
    return response.json()["context_id"]


def test_index_lists_endpoints(client):
    """The landing page lists the API operations with their summaries."""
    response = client.get("/")
    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert "<code>POST /v1/init</code> - Initialize a new context." in response.text
    assert "PUT /commit" in response.text
    assert "GET /readme" in response.text
    assert "<code>GET /</code>" not in response.text


def test_index_rows_follow_registration_order(app):
    """Rows come from the OpenAPI document, so routers mounted with include_router are listed."""
    rows = IndexPageRenderer.endpoints(app)
    paths = [path for _, path, _ in rows]
    assert ("GET", "/health", "Health check.") in rows
    assert paths.index("/health") < paths.index("/v1/init") < paths.index("/commit") < paths.index("/repos")
    assert len(rows) == 15


def test_health(client):
    """Health reports status, live contexts and the object store in use."""
    new_context(client)
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["contexts"] == 1
    assert body["object_store"] == "memory"


def test_lifespan_starts_the_sweeper(app):
    """The eviction sweeper runs for exactly the lifetime of the app."""
    services = app.state.services
    with TestClient(app):
        assert services.sweeper.running
    assert not services.sweeper.running


def test_context_workflow(client):
    """Add, read, search and remove files through the HTTP API."""
    context_id = new_context(client)

    response = client.post("/v1/add_file", json={
        "context_id": context_id, "path": "src/app.py", "content": "def main():\n    pass\n", "repo": "demo",
    })
    assert response.json() == {"success": True}
    client.post("/v1/add_file", json={"context_id": context_id, "path": "notes.md", "content": "TODO: main docs"})

    snapshot = client.get("/v1/get_context", params={"context_id": context_id}).json()
    assert snapshot["file_count"] == 2
    assert snapshot["repo_info"] == {"repo": "demo", "branch": "main"}
    assert snapshot["files"][0]["content"] == "def main():\n    pass\n"
    assert snapshot["files"][0]["size"] == 21

    search = client.post("/v1/search", json={"context_id": context_id, "query": "MAIN"}).json()
    assert search["total_matches"] == 2
    assert search["files_scanned"] == 2
    assert search["results"][0]["matches"][0] == {"line": 1, "content": "def main():", "preview": "def main():"}

    assert client.post("/v1/remove_file", json={"context_id": context_id, "path": "notes.md"}).status_code == 200
    snapshot = client.get("/v1/get_context", params={"context_id": context_id}).json()
    assert [f["path"] for f in snapshot["files"]] == ["src/app.py"]


def test_unknown_context_error_shape(client):
    """Errors are rendered as {"error": {kind, reason, detail}}."""
    response = client.get("/v1/get_context", params={"context_id": "ctx_nope"})
    assert response.status_code == 404
    assert response.json() == {
        "error": {"kind": "not_found", "reason": "context_not_found", "detail": "Context 'ctx_nope' not found"}
    }


def test_removing_a_missing_path(client):
    """Removing a path that is not in the context is path_not_found."""
    context_id = new_context(client)
    response = client.post("/v1/remove_file", json={"context_id": context_id, "path": "ghost.txt"})
    assert response.status_code == 404
    assert response.json()["error"]["reason"] == "path_not_found"


def test_malformed_body_is_a_validation_error(client):
    """Request bodies failing schema validation are 400 validation errors."""
    response = client.post("/v1/add_file", json={"path": "a.txt"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["kind"] == "validation"
    assert "context_id" in error["detail"]


def test_missing_query_parameter_is_a_validation_error(client):
    """A missing query parameter is a 400 validation error."""
    response = client.get("/v1/get_context")
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation"


def test_empty_search_query(client):
    """An empty search query is rejected as missing_query."""
    context_id = new_context(client)
    response = client.post("/v1/search", json={"context_id": context_id, "query": ""})
    assert response.status_code == 400
    assert response.json()["error"]["reason"] == "missing_query"


def test_push_files(client, object_store):
    """A multi-file push lands as one commit and keeps unlisted files."""
    response = client.post("/v1/push_files", json={
        "repo": "demo",
        "files": [{"path": "b.txt", "content": "2"}, {"path": "c.txt", "content": "3"}],
        "message": "Add b and c",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["branch"] == "main"
    assert body["message"] == "Add b and c"
    assert [f["path"] for f in body["files"]] == ["b.txt", "c.txt"]
    assert object_store.read_file("demo", "main", "a.txt") == "original\n"
    assert object_store.read_file("demo", "main", "c.txt") == "3"


def test_push_without_files(client):
    """A push with no files is rejected before touching the repository."""
    response = client.post("/v1/push_files", json={"repo": "demo", "files": [], "message": "nothing"})
    assert response.status_code == 400
    assert response.json()["error"]["reason"] == "empty_file_list"


def test_single_file_commit_accepts_repo_name_alias(client, object_store):
    """PUT /commit accepts repoName for the repository."""
    response = client.put("/commit", json={
        "repoName": "demo", "path": "a.txt", "content": "1", "message": "m",
    })
    assert response.status_code == 200
    assert object_store.read_file("demo", "main", "a.txt") == "1"


def test_commit_to_unknown_repo(client):
    """Committing to an unknown repository is repo_not_found."""
    response = client.put("/commit", json={"repo": "ghost", "path": "a.txt", "content": "1", "message": "m"})
    assert response.status_code == 404
    assert response.json()["error"]["reason"] == "repo_not_found"


@pytest.mark.parametrize(
    "error, reason",
    [
        (ConflictError("Branch 'main' of 'demo' moved"), "ref_conflict"),
        (RefUpdateAmbiguousError("Timed out"), "ref_update_ambiguous"),
    ],
)
def test_ref_update_failures_are_conflicts(client, object_store, mocker, error, reason):
    """Moved branches and ambiguous ref updates are both 409 conflicts."""
    mocker.patch.object(object_store, "update_ref", side_effect=error)
    response = client.put("/commit", json={"repo": "demo", "path": "a.txt", "content": "1", "message": "m"})
    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "conflict"
    assert response.json()["error"]["reason"] == reason


def test_commit_context_uses_recorded_repo(client, object_store):
    """Committing a context targets the repository recorded by add_file."""
    context_id = new_context(client)
    client.post("/v1/add_file", json={"context_id": context_id, "path": "a.txt", "content": "staged", "repo": "demo"})
    client.post("/v1/add_file", json={"context_id": context_id, "path": "new.txt", "content": "new"})

    response = client.post("/v1/commit_context", json={"context_id": context_id, "message": "Commit staged files"})

    assert response.status_code == 200
    assert response.json()["repo"] == "demo"
    assert object_store.read_file("demo", "main", "a.txt") == "staged"
    assert object_store.read_file("demo", "main", "new.txt") == "new"


def test_commit_context_without_repo(client):
    """A context with no recorded repository needs one in the request."""
    context_id = new_context(client)
    client.post("/v1/add_file", json={"context_id": context_id, "path": "a.txt", "content": "x"})
    response = client.post("/v1/commit_context", json={"context_id": context_id, "message": "m"})
    assert response.status_code == 400
    assert response.json()["error"]["reason"] == "missing_repo"


def test_github_files(client):
    """Files at a repository path are returned decoded."""
    response = client.post("/v1/github_files", json={"repo": "demo", "path": "docs"})
    assert response.status_code == 200
    assert response.json() == {"files": [{"path": "docs/guide.md", "content": "# Guide\n"}]}


def test_unexpected_errors_are_internal(app, object_store, mocker):
    """Unhandled exceptions become 500 internal errors."""
    mocker.patch.object(object_store, "get_files", side_effect=KeyError("boom"))
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/v1/github_files", json={"repo": "demo"})
    assert response.status_code == 500
    assert response.json()["error"]["kind"] == "internal"


def test_lone_surrogate_content_is_a_validation_error(client):
    """Content with no UTF-8 form is rejected as invalid_encoding and not stored."""
    context_id = new_context(client)
    body = '{"context_id": "%s", "path": "a.txt", "content": "\\ud800"}' % context_id
    response = client.post("/v1/add_file", content=body, headers={"content-type": "application/json"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert (error["kind"], error["reason"]) == ("validation", "invalid_encoding")
    assert client.get("/v1/get_context", params={"context_id": context_id}).json()["file_count"] == 0


def test_push_with_lone_surrogate_touches_nothing(client, object_store):
    """A push whose content cannot be encoded leaves the branch unchanged."""
    head = object_store.list_paths("demo", "main")
    body = '{"repo": "demo", "files": [{"path": "b.txt", "content": "\\udfff"}], "message": "m"}'
    response = client.post("/v1/push_files", content=body, headers={"content-type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"]["reason"] == "invalid_encoding"
    assert object_store.list_paths("demo", "main") == head


def test_github_files_with_binary_content(client, object_store):
    """Binary files in a listing decode lossily instead of failing the request."""
    object_store.create_repo("assets", files={"logo.bin": b"\xff\xfe\x00binary", "notes.txt": "hi"})
    response = client.post("/v1/github_files", json={"repo": "assets"})
    assert response.status_code == 200
    assert response.json()["files"] == [
        {"path": "logo.bin", "content": "\ufffd\ufffd\x00binary"},
        {"path": "notes.txt", "content": "hi"},
    ]


def test_list_repos(client, object_store):
    """Repositories are listed by name."""
    object_store.create_repo("site")
    body = client.get("/repos").json()
    assert [r["name"] for r in body] == ["demo", "site"]
    assert body[0]["default_branch"] == "main"


def test_list_commits(client, object_store):
    """Commits are listed newest first and the limit is validated."""
    client.put("/commit", json={"repo": "demo", "path": "a.txt", "content": "1", "message": "Update a"})
    response = client.get("/commits", params={"repoName": "demo", "branch": "main"})
    assert response.status_code == 200
    assert [c["message"] for c in response.json()] == ["Update a", "Initial commit"]

    assert len(client.get("/commits", params={"repoName": "demo", "limit": 1}).json()) == 1
    assert client.get("/commits", params={"repoName": "demo", "limit": 0}).status_code == 400


def test_get_branch(client, object_store):
    """Branch info carries the head commit; unknown branches are 404."""
    response = client.get("/branch", params={"repoName": "demo", "branchName": "main"})
    assert response.status_code == 200
    head = client.get("/commits", params={"repoName": "demo"}).json()[0]["sha"]
    assert response.json() == {"name": "main", "commit_sha": head, "protected": False}

    missing = client.get("/branch", params={"repoName": "demo", "branchName": "dev"})
    assert missing.status_code == 404
    assert missing.json()["error"]["reason"] == "branch_not_found"


def test_readme_is_plain_text(client, object_store):
    """The README is served as plain text; a missing one is readme_not_found."""
    object_store.create_repo("site", files={"README.md": "# Site\n"})
    response = client.get("/readme", params={"repoName": "site"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "# Site\n"

    missing = client.get("/readme", params={"repoName": "demo"})
    assert missing.status_code == 404
    assert missing.json()["error"]["reason"] == "readme_not_found"


def test_list_files(client):
    """Directory listings name files and subdirectories."""
    response = client.get("/files", params={"repoName": "demo"})
    assert response.status_code == 200
    assert [(e["name"], e["type"]) for e in response.json()] == [("a.txt", "file"), ("docs", "dir")]

    unknown = client.get("/files", params={"repoName": "ghost"})
    assert unknown.status_code == 404
    assert unknown.json()["error"]["reason"] == "repo_not_found"
