# archie_sandbox/config.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict


@dataclass(frozen=True)
class Config:
    # --- HTTP surface ---
    host: str = "0.0.0.0"
    port: int = 3939

    # --- image / build (host-side) ---
    dev_image: str = "dev-app"
    build_context: Path = Path("./app")
    workspace_mirror_dir: Path = Path("./app")   # archived by finish()
    backup_path: Path = Path("./backup.zip")
    container_prefix: str = "dev-"

    # --- in-container canonical values (do not change lightly) ---
    workspace_root: str = "/app"
    dev_server_port: int = 3001
    workspace_user: str = "node"
    workspace_owner: str = "node:node"
    container_temp_root: str = "/tmp"

    # --- transfer tuning ---
    host_temp_root: Path = Path(tempfile.gettempdir())
    batch_size: int = 10
    batch_pause_ms: int = 100
    command_timeout_s: Optional[float] = None

    log_level: str = "INFO"

    # ---------- helpers ----------

    @property
    def batch_pause_s(self) -> float:
        return self.batch_pause_ms / 1000.0

    @property
    def exposed_port(self) -> str:
        """Docker's key for the dev server port, e.g. "3001/tcp"."""
        return f"{self.dev_server_port}/tcp"

    def dev_server_env(self) -> Dict[str, str]:
        """Environment the embedded dev server needs to be reachable from the host."""
        return {"VITE_HOST": "0.0.0.0", "VITE_PORT": str(self.dev_server_port)}

    # ---------- construction ----------

    @staticmethod
    def _load_env_file(env_file_path: Optional[Path]) -> Dict[str, str]:
        """Load KEY=VALUE pairs from a file if provided."""
        if env_file_path is None:
            return {}

        env_vars = {}
        if env_file_path.exists():
            with open(env_file_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#"):
                        continue
                    if "=" in line:
                        key, value = line.split("=", 1)
                        # inline comments
                        if "#" in value:
                            value = value.split("#")[0]
                        env_vars[key.strip()] = value.strip()
        return env_vars

    @staticmethod
    def _get_env_value(name: str, default: Optional[str] = None, env_vars: Optional[Dict[str, str]] = None) -> Optional[str]:
        """Get a value, checking the file first, then the process env."""
        if env_vars and name in env_vars:
            return env_vars[name]
        return os.getenv(name, default)

    @classmethod
    def _get_env_int(cls, name: str, default: int, env_vars: Optional[Dict[str, str]] = None) -> int:
        raw = cls._get_env_value(name, None, env_vars)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw.strip())
        except ValueError:
            raise ValueError(f"{name} must be an integer (got: {raw!r})")

    @classmethod
    def from_env(cls, env_file_path: Optional[Path] = None) -> "Config":
        """
        Load configuration from environment variables, optionally from a file.

        Args:
            env_file_path: Optional path to an env file. Variables from the file
                           take precedence over process environment variables.

        Environment variables:
          - PORT                 = 3939
          - HOST                 = 0.0.0.0
          - DEV_IMAGE            = dev-app
          - BUILD_CONTEXT        = ./app
          - WORKSPACE_MIRROR_DIR = ./app
          - BACKUP_PATH          = ./backup.zip
          - CONTAINER_PREFIX     = dev-
          - WORKSPACE_ROOT       = /app
          - DEV_SERVER_PORT      = 3001
          - WORKSPACE_USER       = node
          - WORKSPACE_OWNER      = node:node
          - CONTAINER_TEMP_ROOT  = /tmp
          - HOST_TEMP_ROOT       = <system temp dir>
          - BATCH_SIZE           = 10
          - BATCH_PAUSE_MS       = 100
          - COMMAND_TIMEOUT_S    = (unset: no timeout)
          - LOG_LEVEL            = INFO
        """
        env_vars = cls._load_env_file(env_file_path)
        get = lambda name, default=None: cls._get_env_value(name, default, env_vars)  # noqa: E731

        port = cls._get_env_int("PORT", 3939, env_vars)
        dev_server_port = cls._get_env_int("DEV_SERVER_PORT", 3001, env_vars)
        batch_size = cls._get_env_int("BATCH_SIZE", 10, env_vars)
        batch_pause_ms = cls._get_env_int("BATCH_PAUSE_MS", 100, env_vars)

        if batch_size < 1:
            raise ValueError(f"BATCH_SIZE must be at least 1 (got: {batch_size})")
        if batch_pause_ms < 0:
            raise ValueError(f"BATCH_PAUSE_MS must not be negative (got: {batch_pause_ms})")

        timeout_raw = get("COMMAND_TIMEOUT_S")
        command_timeout_s = None
        if timeout_raw and timeout_raw.strip():
            try:
                command_timeout_s = float(timeout_raw)
            except ValueError:
                raise ValueError(f"COMMAND_TIMEOUT_S must be a number (got: {timeout_raw!r})")

        workspace_root = get("WORKSPACE_ROOT", "/app").rstrip("/") or "/"
        if not workspace_root.startswith("/"):
            raise ValueError(f"WORKSPACE_ROOT must be an absolute path (got: {workspace_root!r})")

        return cls(
            host=get("HOST", "0.0.0.0"),
            port=port,
            dev_image=get("DEV_IMAGE", "dev-app"),
            build_context=Path(get("BUILD_CONTEXT", "./app")).resolve(),
            workspace_mirror_dir=Path(get("WORKSPACE_MIRROR_DIR", "./app")).resolve(),
            backup_path=Path(get("BACKUP_PATH", "./backup.zip")).resolve(),
            container_prefix=get("CONTAINER_PREFIX", "dev-"),
            workspace_root=workspace_root,
            dev_server_port=dev_server_port,
            workspace_user=get("WORKSPACE_USER", "node"),
            workspace_owner=get("WORKSPACE_OWNER", "node:node"),
            container_temp_root=get("CONTAINER_TEMP_ROOT", "/tmp"),
            host_temp_root=Path(get("HOST_TEMP_ROOT", tempfile.gettempdir())).resolve(),
            batch_size=batch_size,
            batch_pause_ms=batch_pause_ms,
            command_timeout_s=command_timeout_s,
            log_level=get("LOG_LEVEL", "INFO").upper(),
        )
