# ---------------------------
# archie_sandbox/sandbox/session_manager.py
# ---------------------------

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from docker import errors

from ..config import Config
from ..errors import (
    ArchiveFailure,
    BuildFailure,
    ContainerCreateFailure,
    ContainerNotFound,
    ContainerStartFailure,
    InvalidSessionState,
    TeardownFailure,
    OrchestratorError,
)
from .archive import build_archive
from .commands import CommandRunner
from .container_utils import ContainerResolver
from .file_sync import FileSyncEngine
from .locks import SessionLocks

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    REMOVED = "removed"


_ORDER = [SessionStatus.CREATED, SessionStatus.RUNNING, SessionStatus.STOPPED, SessionStatus.REMOVED]


class SessionInfo:
    """
    Lightweight record for one dev container created by this process.

    Fields:
    - container_id: the container name, ``dev-<unix ms>``.
    - port: host port bound to the dev server port inside the container.
    - status: created -> running -> stopped -> removed, never backwards.
    - created_at: unix timestamp.
    """
    def __init__(self, container_id: str, port: int):
        self.container_id = container_id
        self.port = port
        self.status = SessionStatus.CREATED
        self.created_at = time.time()

    def advance(self, status: SessionStatus) -> None:
        if _ORDER.index(status) <= _ORDER.index(self.status):
            raise InvalidSessionState(
                f"Session {self.container_id} cannot go from {self.status.value} to {status.value}"
            )
        self.status = status


class SessionManager:
    """
    Create and finalize dev containers.

    The docker client is passed in rather than created here, so the same
    client backs the resolver, the exec channel and this manager, and tests
    can hand in a fake.

    Sessions created by this process are tracked in ``self.sessions`` to keep
    their status moving forward. Ids minted by an earlier process are still
    accepted by finish()/logs(); they just have no local record.
    """

    def __init__(
        self,
        client,
        config: Config,
        file_sync: FileSyncEngine,
        runner: Optional[CommandRunner] = None,
        resolver: Optional[ContainerResolver] = None,
        locks: Optional[SessionLocks] = None,
    ):
        self.client = client
        self.config = config
        self.file_sync = file_sync
        self.runner = runner or CommandRunner(timeout=config.command_timeout_s)
        self.resolver = resolver or ContainerResolver(client)
        self.locks = locks or file_sync.locks

        self.sessions: Dict[str, SessionInfo] = {}
        self._last_stamp = 0

    def _new_container_id(self) -> str:
        # time-based like the image's own naming; bumped if two land in the same ms
        stamp = int(time.time() * 1000)
        if stamp <= self._last_stamp:
            stamp = self._last_stamp + 1
        self._last_stamp = stamp
        return f"{self.config.container_prefix}{stamp}"

    # ---------- create ----------

    async def _build_image(self) -> None:
        logger.info("Building container image %s from %s", self.config.dev_image, self.config.build_context)
        result = await self.runner.run(
            ["docker", "build", "-t", self.config.dev_image, str(self.config.build_context)]
        )
        if not result.ok:
            raise BuildFailure(
                f"docker build exited with {result.exit_code}: {result.output or 'no output'}",
                stage="build",
            )

    def _create_container(self, container_id: str):
        port = self.config.dev_server_port
        return self.client.containers.create(
            self.config.dev_image,
            name=container_id,
            ports={self.config.exposed_port: port},
            environment=self.config.dev_server_env(),
        )

    def _rollback(self, container) -> bool:
        """Remove a container that was created but never started. Returns whether it is gone."""
        try:
            container.remove(force=True)
            logger.info("Removed unstarted container %s", getattr(container, "name", container))
            return True
        except errors.APIError as e:
            logger.error("Could not roll back container %s: %s", getattr(container, "name", container), e)
            return False

    async def create(self) -> SessionInfo:
        """
        Build the image, create the container and start it.

        Flow (each step needs the previous one):
        1) Mint a session id.
        2) ``docker build`` the workspace image; non-zero exit -> BuildFailure.
        3) Create the container with the dev server port bound and its env set.
        4) Start it. If start fails the container is removed again so it does
           not leak, and ContainerStartFailure is raised. The session is only
           marked removed if that removal worked.

        Returns:
            The SessionInfo, status RUNNING.
        """
        container_id = self._new_container_id()

        await self._build_image()

        try:
            container = await asyncio.to_thread(self._create_container, container_id)
        except errors.DockerException as e:
            raise ContainerCreateFailure(f"Could not create container {container_id}: {e}", stage="create")

        info = SessionInfo(container_id, self.config.dev_server_port)
        self.sessions[container_id] = info

        try:
            await asyncio.to_thread(container.start)
        except errors.DockerException as e:
            if await asyncio.to_thread(self._rollback, container):
                info.advance(SessionStatus.REMOVED)
            raise ContainerStartFailure(f"Could not start container {container_id}: {e}", stage="start")

        info.advance(SessionStatus.RUNNING)
        logger.info("Container %s running, dev server on port %d", container_id, info.port)
        return info

    # ---------- finish ----------

    def _check_can_finish(self, container_id: str) -> None:
        info = self.sessions.get(container_id)
        if info and info.status == SessionStatus.REMOVED:
            raise InvalidSessionState(f"Session {container_id} is already removed")

    async def finish(self, container_id: str, sync_workspace: bool = False) -> Path:
        """
        Archive the workspace mirror and tear the container down.

        Flow:
        1) (optional) mirror the container's project files into the host mirror dir.
        2) Zip the mirror dir to ``config.backup_path``. On failure raise
           ArchiveFailure and leave the container alone, so the caller can retry.
        3) Stop the container, then remove it. Remove is only attempted after a
           successful stop. Either failing raises TeardownFailure; the archive
           is already safe at that point.

        Returns:
            Path to the backup archive.
        """
        async with self.locks.for_session(container_id):
            self._check_can_finish(container_id)

            if sync_workspace:
                try:
                    await self.file_sync.mirror_to_host(container_id, self.config.workspace_mirror_dir)
                except (OrchestratorError, OSError) as e:
                    raise ArchiveFailure(f"Workspace sync before backup failed: {e}", stage="sync")

            backup = await build_archive(self.config.workspace_mirror_dir, self.config.backup_path)

            await self._teardown(container_id)

        self.locks.discard(container_id)
        return backup

    async def _teardown(self, container_id: str) -> None:
        info = self.sessions.get(container_id)
        try:
            container = await self.resolver.get(container_id)
        except OrchestratorError as e:
            raise TeardownFailure(f"Failed to stop container: {e.details}", stage="stop")

        # a previous finish may have stopped it and then failed to remove
        if not (info and info.status == SessionStatus.STOPPED):
            try:
                await asyncio.to_thread(container.stop)
            except errors.DockerException as e:
                raise TeardownFailure(f"Failed to stop container: {e}", stage="stop")
            if info:
                info.advance(SessionStatus.STOPPED)

        try:
            await asyncio.to_thread(container.remove)
        except errors.DockerException as e:
            raise TeardownFailure(f"Failed to remove container: {e}", stage="remove")
        if info:
            info.advance(SessionStatus.REMOVED)

        logger.info("Container %s stopped and removed", container_id)

    # ---------- logs ----------

    async def logs(self, container_id: str, tail: int = 100, timestamps: bool = False) -> List[str]:
        """
        Last ``tail`` log lines of the container (stdout and stderr), blank lines dropped.
        """
        container = await self.resolver.get(container_id)
        try:
            raw = await asyncio.to_thread(
                container.logs,
                stdout=True,
                stderr=True,
                tail=tail,
                timestamps=timestamps,
                follow=False,
            )
        except errors.NotFound:
            raise ContainerNotFound(f"No such container: {container_id}")
        except errors.APIError as e:
            raise OrchestratorError(f"Could not read logs of {container_id}: {e}")

        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        return [line for line in text.split("\n") if line.strip()]
