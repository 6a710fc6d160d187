# tests/test_config.py
from pathlib import Path

import pytest

from archie_sandbox.config import Config

ENV_KEYS = [
    "HOST",
    "PORT",
    "DEV_IMAGE",
    "BUILD_CONTEXT",
    "WORKSPACE_MIRROR_DIR",
    "BACKUP_PATH",
    "CONTAINER_PREFIX",
    "WORKSPACE_ROOT",
    "DEV_SERVER_PORT",
    "WORKSPACE_USER",
    "WORKSPACE_OWNER",
    "CONTAINER_TEMP_ROOT",
    "HOST_TEMP_ROOT",
    "BATCH_SIZE",
    "BATCH_PAUSE_MS",
    "COMMAND_TIMEOUT_S",
    "LOG_LEVEL",
]


def _clear_env(monkeypatch):
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)


def test_defaults(monkeypatch):
    _clear_env(monkeypatch)
    c = Config.from_env()
    assert c.port == 3939
    assert c.dev_image == "dev-app"
    assert c.workspace_root == "/app"
    assert c.dev_server_port == 3001
    assert c.exposed_port == "3001/tcp"
    assert c.dev_server_env() == {"VITE_HOST": "0.0.0.0", "VITE_PORT": "3001"}
    assert c.batch_size == 10
    assert c.batch_pause_s == 0.1
    assert c.command_timeout_s is None
    assert c.container_prefix == "dev-"
    # Paths resolve but need not exist
    assert c.backup_path.name == "backup.zip"
    assert c.backup_path.is_absolute()
    assert c.workspace_mirror_dir.name == "app"


def test_env_file_overrides(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    env_file = tmp_path / "test.env"
    env_file.write_text(f"""# sandbox settings
PORT=4000
BATCH_SIZE=3   # smaller batches
BACKUP_PATH={tmp_path / "b.zip"}
WORKSPACE_ROOT=/srv/app/
COMMAND_TIMEOUT_S=90
LOG_LEVEL=debug
""")
    c = Config.from_env(env_file_path=env_file)
    assert c.port == 4000
    assert c.batch_size == 3
    assert c.backup_path == (tmp_path / "b.zip").resolve()
    assert c.workspace_root == "/srv/app"
    assert c.command_timeout_s == 90.0
    assert c.log_level == "DEBUG"


def test_env_file_wins_over_process_env(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    monkeypatch.setenv("DEV_IMAGE", "from-env")
    monkeypatch.setenv("DEV_SERVER_PORT", "5173")
    env_file = tmp_path / "test.env"
    env_file.write_text("DEV_IMAGE=from-file\n")
    c = Config.from_env(env_file_path=env_file)
    assert c.dev_image == "from-file"
    assert c.dev_server_port == 5173


def test_missing_env_file_is_ignored(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    c = Config.from_env(env_file_path=tmp_path / "nope.env")
    assert c.port == 3939


@pytest.mark.parametrize("line,match", [
    ("PORT=abc", "PORT must be an integer"),
    ("BATCH_SIZE=0", "BATCH_SIZE must be at least 1"),
    ("BATCH_PAUSE_MS=-5", "BATCH_PAUSE_MS must not be negative"),
    ("COMMAND_TIMEOUT_S=soon", "COMMAND_TIMEOUT_S must be a number"),
    ("WORKSPACE_ROOT=app", "WORKSPACE_ROOT must be an absolute path"),
])
def test_invalid_values(monkeypatch, tmp_path, line, match):
    _clear_env(monkeypatch)
    env_file = tmp_path / "test.env"
    env_file.write_text(line + "\n")
    with pytest.raises(ValueError, match=match):
        Config.from_env(env_file_path=env_file)


def test_config_is_frozen():
    c = Config()
    with pytest.raises(Exception):
        c.port = 1
    assert isinstance(c.host_temp_root, Path)
