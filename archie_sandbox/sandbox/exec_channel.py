# archie_sandbox/sandbox/exec_channel.py
"""
In-container exec channel.

Opens an exec session inside a running container under a chosen identity,
streams its output, accumulates stdout/stderr and reports the exit code once
the stream ends.

Two identities exist on purpose: ``PRIVILEGED`` is only used to create
directories and hand them back to the workspace user; everything else runs as
``WORKSPACE`` so no root-owned files end up where the dev server's own tooling
(hot reload, package manager) needs to write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from docker import errors

from ..errors import ContainerNotFound, ExecFailure

logger = logging.getLogger(__name__)


class ExecUser(str, Enum):
    PRIVILEGED = "root"
    WORKSPACE = "node"


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr

    def check(self, stage: str) -> "ExecResult":
        """Raise ExecFailure naming ``stage`` if the command exited non-zero."""
        if not self.ok:
            detail = (self.stderr or self.stdout).strip() or "no output"
            raise ExecFailure(f"{stage} failed (exit {self.exit_code}): {detail}", stage=stage)
        return self


class ExecChannel:
    """
    Runs commands inside containers through the docker low-level API.

    ``workspace_user`` overrides the account behind ExecUser.WORKSPACE for
    images that do not ship a ``node`` user.
    """

    def __init__(self, client, workspace_user: Optional[str] = None):
        self.client = client
        self.workspace_user = workspace_user or ExecUser.WORKSPACE.value

    def _user_name(self, user: ExecUser) -> str:
        if user == ExecUser.WORKSPACE:
            return self.workspace_user
        return user.value

    def run_sync(self, container_id: str, argv: List[str], user: ExecUser = ExecUser.WORKSPACE) -> ExecResult:
        api = self.client.api
        try:
            exec_id = api.exec_create(
                container_id,
                argv,
                stdout=True,
                stderr=True,
                user=self._user_name(user),
            )["Id"]

            out_chunks: List[bytes] = []
            err_chunks: List[bytes] = []
            for out, err in api.exec_start(exec_id, stream=True, demux=True):
                if out:
                    out_chunks.append(out)
                if err:
                    err_chunks.append(err)

            exit_code = api.exec_inspect(exec_id).get("ExitCode")
        except errors.NotFound as e:
            raise ContainerNotFound(f"No such container: {container_id} ({e})")
        except errors.APIError as e:
            raise ExecFailure(f"Exec stream error in {container_id}: {e}")

        # exit code is None only if the stream ended before the process did
        if exit_code is None:
            exit_code = -1

        result = ExecResult(
            exit_code=exit_code,
            stdout=b"".join(out_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(err_chunks).decode("utf-8", errors="replace"),
        )
        if result.stderr:
            logger.debug("stderr from exec in %s: %s", container_id, result.stderr.strip())
        return result

    async def run(self, container_id: str, argv: List[str], user: ExecUser = ExecUser.WORKSPACE) -> ExecResult:
        return await asyncio.to_thread(self.run_sync, container_id, argv, user)
