import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from archie_sandbox.config import Config  # noqa: E402
from archie_sandbox.sandbox.container_utils import ContainerResolver  # noqa: E402
from archie_sandbox.sandbox.file_sync import FileSyncEngine  # noqa: E402

from fakes import FakeContainer, FakeDockerClient, LocalExecChannel  # noqa: E402


@pytest.fixture
def workspace(tmp_path) -> Path:
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path, workspace) -> Config:
    (tmp_path / "ctmp").mkdir()
    return Config(
        workspace_root=str(workspace),
        workspace_owner=f"{os.getuid()}:{os.getgid()}",
        container_temp_root=str(tmp_path / "ctmp"),
        host_temp_root=tmp_path / "hosttmp",
        workspace_mirror_dir=tmp_path / "mirror",
        backup_path=tmp_path / "out" / "backup.zip",
        build_context=tmp_path / "app-src",
        batch_size=2,
        batch_pause_ms=0,
    )


@pytest.fixture
def fake_client() -> FakeDockerClient:
    client = FakeDockerClient()
    client.containers.by_name["dev-1"] = FakeContainer("dev-1")
    return client


@pytest.fixture
def local_exec() -> LocalExecChannel:
    return LocalExecChannel()


@pytest.fixture
def engine(config, fake_client, local_exec) -> FileSyncEngine:
    return FileSyncEngine(ContainerResolver(fake_client), local_exec, config)
