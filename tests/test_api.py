# tests/test_api.py
import shutil
import zipfile
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from archie_sandbox.api import create_app

from fakes import FakeContainer, FakeRunner, LocalExecChannel

needs_sh = pytest.mark.skipif(
    shutil.which("sh") is None or shutil.which("base64") is None,
    reason="needs a POSIX shell with coreutils",
)


@pytest.fixture
def app(config, fake_client):
    app = create_app(config, client=fake_client)
    # host commands and in-container execs run locally
    app.state.session_manager.runner = FakeRunner()
    app.state.file_sync.exec = LocalExecChannel()
    return app


@pytest.fixture
def http(app):
    return TestClient(app)


def _error_shape(body):
    assert set(body) == {"error", "details", "category"}


# ---------- start ----------

def test_start(http, fake_client):
    r = http.post("/api/container/start")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["containerId"].startswith("dev-")
    assert body["port"] == 3001
    assert body["status"] == "running"
    assert fake_client.containers.by_name[body["containerId"]].events == ["start"]


def test_start_build_failure(http, app):
    app.state.session_manager.runner = FakeRunner(exit_code=1, stderr="failed to solve")
    r = http.post("/api/container/start")
    assert r.status_code == 500
    body = r.json()
    _error_shape(body)
    assert body["error"] == "Failed to start container"
    assert body["category"] == "BuildFailure"
    assert "failed to solve" in body["details"]


# ---------- finish ----------

@pytest.mark.parametrize("payload", [{}, {"containerId": ""}])
def test_finish_requires_container_id(http, payload):
    r = http.post("/api/container/finish", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "Container ID is required"


def test_finish(http, config, fake_client):
    config.workspace_mirror_dir.mkdir()
    (config.workspace_mirror_dir / "index.html").write_text("<html></html>")

    r = http.post("/api/container/finish", json={"containerId": "dev-1"})

    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "message": "Container stopped and backup created",
        "backupPath": str(config.backup_path),
    }
    assert fake_client.containers.by_name["dev-1"].events == ["stop", "remove"]


def test_finish_backup_failure(http, fake_client):
    r = http.post("/api/container/finish", json={"containerId": "dev-1"})
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Backup failed"
    assert body["category"] == "ArchiveFailure"
    assert fake_client.containers.by_name["dev-1"].events == []


def test_finish_unknown_container(http, config):
    config.workspace_mirror_dir.mkdir()
    r = http.post("/api/container/finish", json={"containerId": "dev-404"})
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to stop container"
    assert body["category"] == "TeardownFailure"


# ---------- edit ----------

@pytest.mark.parametrize("payload", [
    {},
    {"filePath": "src/a.ts"},
    {"content": "x"},
    {"filePath": "src/a.ts", "content": ""},
])
def test_edit_requires_path_and_content(http, payload):
    r = http.post("/api/container/dev-1/edit", json=payload)
    assert r.status_code == 400
    assert r.json()["error"] == "filePath and content are required"


def test_edit_outside_workspace(http):
    r = http.post("/api/container/dev-1/edit", json={"filePath": "../../etc/passwd", "content": "x"})
    assert r.status_code == 400
    body = r.json()
    _error_shape(body)
    assert body["category"] == "ValidationFailure"


@needs_sh
def test_edit(http, workspace):
    r = http.post(
        "/api/container/dev-1/edit",
        json={"filePath": "src/pages/home.tsx", "content": "export function Home(){return null;}"},
    )
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "message": "File updated in container",
        "containerId": "dev-1",
        "filePath": str(workspace / "src/pages/home.tsx"),
        "contentLength": 36,
    }


# ---------- read / enumerate ----------

def test_file_requires_path(http):
    r = http.post("/api/container/dev-1/file", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "filePath is required"


def test_file(http, workspace):
    (workspace / "main.tsx").write_text("const a = 1;")
    r = http.post("/api/container/dev-1/file", json={"filePath": "main.tsx"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "content": "const a = 1;"}


def test_file_missing(http):
    r = http.post("/api/container/dev-1/file", json={"filePath": "missing.tsx"})
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Failed to get file from container"
    assert body["category"] == "FileTransferFailure"


@needs_sh
def test_load_project(http, workspace):
    (workspace / "src").mkdir()
    (workspace / "src" / "main.tsx").write_text("render();")
    (workspace / "node_modules").mkdir()
    (workspace / "node_modules" / "x.js").write_text("x")

    r = http.get("/api/container/dev-1/load-project")
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "containerId": "dev-1",
        "files": {"src/main.tsx": "render();"},
        "fileCount": 1,
    }


def test_load_paths(http, app):
    app.state.file_sync.list_text_paths = AsyncMock(return_value=["src/main.tsx", "package.json"])
    r = http.get("/api/container/dev-1/load-paths")
    assert r.status_code == 200
    assert r.json() == {"success": True, "containerId": "dev-1", "files": ["src/main.tsx", "package.json"]}


def test_load_project_unknown_container(http):
    app_response = http.get("/api/container/dev-404/load-project")
    assert app_response.status_code == 500
    assert app_response.json()["category"] == "ContainerNotFound"


# ---------- logs ----------

def test_logs(http, fake_client):
    fake_client.containers.by_name["dev-1"] = FakeContainer("dev-1", log_output=b"a\n\nb\n")
    r = http.get("/api/container/dev-1/logs", params={"tail": 10})
    assert r.status_code == 200
    assert r.json() == {"success": True, "containerId": "dev-1", "logs": ["a", "b"], "count": 2}


def test_logs_negative_tail(http):
    r = http.get("/api/container/dev-1/logs", params={"tail": -1})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request"


# ---------- request validation ----------

def test_malformed_json_is_400(http):
    r = http.post(
        "/api/container/finish",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    body = r.json()
    _error_shape(body)
    assert body["error"] == "Invalid request"


# ---------- whole session ----------

@needs_sh
def test_start_edit_load_finish(http, config, workspace, fake_client):
    started = http.post("/api/container/start").json()
    cid = started["containerId"]

    edit = http.post(
        f"/api/container/{cid}/edit",
        json={"filePath": "src/pages/home.tsx", "content": "export function Home(){return null;}"},
    ).json()
    assert edit["contentLength"] == 36

    project = http.get(f"/api/container/{cid}/load-project").json()
    assert project["files"] == {"src/pages/home.tsx": "export function Home(){return null;}"}

    finished = http.post("/api/container/finish", json={"containerId": cid, "syncWorkspace": True})
    assert finished.status_code == 200
    with zipfile.ZipFile(config.backup_path) as zf:
        assert zf.read("src/pages/home.tsx") == b"export function Home(){return null;}"
    assert fake_client.containers.by_name[cid].events == ["start", "stop", "remove"]

    again = http.post("/api/container/finish", json={"containerId": cid})
    assert again.status_code == 400
    assert again.json()["category"] == "InvalidSessionState"


def test_unexpected_error_is_500(app):
    app.state.file_sync.list_all_files = AsyncMock(side_effect=RuntimeError("kaboom"))
    r = TestClient(app, raise_server_exceptions=False).get("/api/container/dev-1/load-project")
    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error", "details": "kaboom", "category": "InternalError"}
