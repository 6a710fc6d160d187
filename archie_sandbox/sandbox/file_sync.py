# ---------------------------
# archie_sandbox/sandbox/file_sync.py
# ---------------------------
"""
File synchronization between the host and a dev container's workspace.

Writes go in through exec sessions (mkdir/chown as root, then an atomic
write-then-rename as the workspace user, then a read-back). Reads come out
through the docker archive API into a per-call host temp directory that is
removed on every exit path.

Enumeration runs ``find`` inside the container and pulls files out in small
concurrent batches with a pause between batches, so a large project does not
flood the daemon with exec/archive requests.
"""

from __future__ import annotations

import asyncio
import io
import logging
import math
import os
import posixpath
import re
import shutil
import tarfile
import tempfile
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from docker import errors

from ..config import Config
from ..errors import (
    FileTransferFailure,
    OrchestratorError,
    ValidationFailure,
    WriteVerificationFailed,
)
from . import shell
from .container_utils import ContainerResolver
from .exec_channel import ExecChannel, ExecUser
from .locks import SessionLocks

logger = logging.getLogger(__name__)

# Dependency installs, VCS metadata, build output and caches.
EXCLUDED_DIRS = ("node_modules", ".git", "dist", ".cache")

BINARY_EXTENSIONS = (
    "png", "jpg", "jpeg", "gif", "ico",
    "woff", "woff2", "ttf", "eot",
    "mp4", "webm", "mp3", "wav",
    "pdf",
)

# Path fragment of the inspector's own runtime component. Its files are
# injected plumbing, not project source.
INSTRUMENTATION_MARKER = "inspection-handler"

TEXT_MIME_TYPES = frozenset({
    "application/json",
    "application/javascript",
    "application/x-javascript",
    "application/xml",
    "image/svg+xml",
})

COPY_ATTEMPTS = 3


@dataclass(frozen=True)
class WriteResult:
    file_path: str
    content_length: int


def normalize_workspace_path(path: str, root: str = "/app") -> str:
    """
    Root ``path`` under the workspace.

    ``"/app/src/x.ts"``, ``"src/x.ts"`` and ``"/src/x.ts"`` all map to
    ``/app/src/x.ts``. Paths that resolve outside the root (``../``) or to
    the root itself are rejected.
    """
    if path is None or not str(path).strip():
        raise ValidationFailure("filePath is required")
    if "\x00" in path:
        raise ValidationFailure("filePath cannot contain NUL bytes")

    root = posixpath.normpath(root)
    prefix = root if root.endswith("/") else root + "/"

    if path == root or path.startswith(prefix):
        candidate = path
    else:
        candidate = posixpath.join(root, path.lstrip("/"))

    normalized = posixpath.normpath(candidate)
    if not normalized.startswith(prefix) or normalized == root:
        raise ValidationFailure(f"Path is outside the workspace root {root}: {path}")
    return normalized


def parse_find_output(stdout: str) -> List[str]:
    """Turn ``find .`` output into workspace-relative paths (no leading ``./``)."""
    files = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        if line.startswith("./"):
            line = line[2:]
        files.append(line)
    return files


def is_text_mime(mime: str) -> bool:
    mime = mime.strip().lower()
    return mime.startswith("text/") or mime in TEXT_MIME_TYPES


def parse_file_mime_output(stdout: str) -> List[str]:
    """
    Keep the text files from ``file --mime-type`` output
    (``./src/main.tsx: text/plain`` per line).
    """
    paths = []
    for line in stdout.splitlines():
        if ": " not in line:
            continue
        # mime types never contain ": ", paths might
        path, mime = line.rsplit(": ", 1)
        if not is_text_mime(mime):
            continue
        if path.startswith("./"):
            path = path[2:]
        paths.append(path)
    return paths


def _check_listing(listing, stage: str, container_id: str) -> None:
    """
    ``find`` exits 1 when some subdirectory is unreadable but still prints
    everything else; keep that partial listing.
    """
    if listing.exit_code == 1 and listing.stdout.strip():
        logger.warning("%s in %s was partial: %s", stage, container_id, listing.stderr.strip())
        return
    listing.check(stage)


def _safe_fragment(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", value)


def _remove_tree(path: Path) -> None:
    """Best-effort removal of a host temp artifact; failures are only logged."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("TempResourceCleanupFailure: could not remove %s: %s", path, e)


def copy_from_container(container, container_path: str, dst_dir: Path) -> Path:
    """
    Copy a single file out of the container into ``dst_dir``.

    Uses the docker archive API and extracts the one regular file from the
    returned tar. Transient API errors are retried a couple of times;
    a missing file fails immediately.

    Returns:
        Path to the host file at dst_dir/<filename>.
    Raises:
        FileTransferFailure if the file is missing or every attempt fails.
    """
    dst_dir.mkdir(parents=True, exist_ok=True)
    filename = posixpath.basename(container_path)
    out_path = dst_dir / filename

    def _extract_one(tar_bytes: bytes) -> Path:
        with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:*") as tar:
            member = None
            for m in tar.getmembers():
                if m.isfile() and posixpath.basename(m.name) == filename:
                    member = m
                    break
            if member is None:
                raise FileTransferFailure(f"No regular file '{filename}' in archive ({container_path})")
            fsrc = tar.extractfile(member)
            if fsrc is None:
                raise FileTransferFailure(f"Could not extract file '{filename}' from archive")
            with fsrc, open(out_path, "wb") as fdst:
                shutil.copyfileobj(fsrc, fdst)
        return out_path

    last_error: Optional[Exception] = None
    for attempt in range(COPY_ATTEMPTS):
        try:
            bits, _ = container.get_archive(container_path)
            return _extract_one(b"".join(bits))
        except errors.NotFound:
            raise FileTransferFailure(f"No such file in container: {container_path}")
        except (errors.APIError, tarfile.TarError) as e:
            last_error = e
            time.sleep(0.05 * (attempt + 1))

    raise FileTransferFailure(f"Failed to copy {container_path} from container: {last_error}")


class FileSyncEngine:
    """
    Reads, writes and enumerates files in a session's workspace.

    Never creates or destroys containers; it only touches their filesystem.
    """

    def __init__(
        self,
        resolver: ContainerResolver,
        exec_channel: ExecChannel,
        config: Config,
        locks: Optional[SessionLocks] = None,
    ):
        self.resolver = resolver
        self.exec = exec_channel
        self.config = config
        self.locks = locks or SessionLocks()

    # ---------- host temp dirs ----------

    @contextmanager
    def _scoped_temp_dir(self, container_id: str, operation: str) -> Iterator[Path]:
        """
        A host temp dir unique to this call (container id + operation +
        timestamp + random suffix), removed however the block exits.
        """
        root = Path(self.config.host_temp_root)
        root.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        prefix = f"dev-container-{_safe_fragment(container_id)}-{operation}-{stamp}-"
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
        try:
            yield path
        finally:
            _remove_tree(path)

    # ---------- write ----------

    async def write_file(self, container_id: str, path: str, content: str) -> WriteResult:
        """
        Write ``content`` to ``path`` in the workspace.

        Steps (strictly ordered):
        1) as root: create the parent directory and chown it to the workspace owner.
        2) as the workspace user: decode the base64 payload into a unique temp file
           and rename it over the final path, so a reloading dev server never sees
           a half-written file.
        3) read the file back; an empty or unreadable result fails the write.

        Returns:
            WriteResult with the normalized path and the read-back length.
        """
        final_path = normalize_workspace_path(path, self.config.workspace_root)
        directory = posixpath.dirname(final_path)
        temp_path = posixpath.join(
            self.config.container_temp_root,
            f"{posixpath.basename(final_path)}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}",
        )

        async with self.locks.for_session(container_id):
            logger.info("Writing to path: %s in %s", final_path, container_id)

            result = await self.exec.run(
                container_id,
                shell.mkdir_chown(directory, self.config.workspace_owner),
                ExecUser.PRIVILEGED,
            )
            result.check("create directory")

            try:
                for argv in shell.write_scripts(temp_path, final_path, content.encode("utf-8")):
                    result = await self.exec.run(container_id, argv, ExecUser.WORKSPACE)
                    result.check("write file")
            except OrchestratorError:
                await self._discard_container_temp(container_id, temp_path)
                raise

            verify = await self.exec.run(container_id, ["cat", "--", final_path], ExecUser.WORKSPACE)
            if not verify.ok:
                raise WriteVerificationFailed(
                    f"Could not read {final_path} back after writing: {verify.stderr.strip()}",
                    stage="verify",
                )
            if not verify.stdout:
                raise WriteVerificationFailed("File appears to be empty after writing", stage="verify")

        return WriteResult(file_path=final_path, content_length=len(verify.stdout))

    async def _discard_container_temp(self, container_id: str, temp_path: str) -> None:
        try:
            await self.exec.run(container_id, shell.remove(temp_path), ExecUser.WORKSPACE)
        except OrchestratorError as e:
            logger.warning("TempResourceCleanupFailure: could not remove %s in %s: %s", temp_path, container_id, e)

    # ---------- read ----------

    async def _fetch_text(self, container_id: str, path: str, operation: str) -> str:
        container_path = normalize_workspace_path(path, self.config.workspace_root)
        container = await self.resolver.get(container_id)
        with self._scoped_temp_dir(container_id, operation) as tmp:
            host_file = await asyncio.to_thread(copy_from_container, container, container_path, tmp)
            try:
                data = host_file.read_bytes()
            except OSError as e:
                raise FileTransferFailure(f"Could not read copied file {host_file}: {e}")
        return data.decode("utf-8", errors="replace")

    async def read_file(self, container_id: str, path: str) -> str:
        """Copy one file out of the container and return its text."""
        return await self._fetch_text(container_id, path, "read")

    async def get_file(self, container_id: str, path: str) -> str:
        """On-demand single-file retrieval for the HTTP ``file`` operation."""
        return await self._fetch_text(container_id, path, "file")

    # ---------- enumerate ----------

    async def _list_paths(self, container_id: str) -> List[str]:
        listing = await self.exec.run(
            container_id,
            shell.find_files(self.config.workspace_root, EXCLUDED_DIRS),
            ExecUser.WORKSPACE,
        )
        _check_listing(listing, "list files", container_id)
        return [p for p in parse_find_output(listing.stdout) if INSTRUMENTATION_MARKER not in p]

    async def _load_one(self, container, rel_path: str, shared_dir: Path) -> Optional[str]:
        """Fetch one file for list_all_files. Failures are logged, never raised."""
        container_path = posixpath.join(self.config.workspace_root, rel_path)
        # own subdirectory: files in one batch may share a basename
        file_dir = Path(tempfile.mkdtemp(dir=shared_dir))
        try:
            host_file = await asyncio.to_thread(copy_from_container, container, container_path, file_dir)
            content = host_file.read_bytes().decode("utf-8", errors="replace")
            logger.debug("Loaded: %s", rel_path)
            return content
        except (OrchestratorError, OSError) as e:
            logger.error("Error reading file %s: %s", rel_path, e)
            return None
        finally:
            _remove_tree(file_dir)

    async def list_all_files(self, container_id: str) -> Dict[str, str]:
        """
        Every non-empty project file with its content, keyed by workspace-relative path.

        Files are fetched in batches of ``config.batch_size``; a batch only
        starts once the previous one has fully settled.
        """
        files = await self._list_paths(container_id)
        container = await self.resolver.get(container_id)
        logger.info("Found %d files to process in %s", len(files), container_id)

        project_files: Dict[str, str] = {}
        batch_size = self.config.batch_size
        total_batches = math.ceil(len(files) / batch_size) if files else 0

        with self._scoped_temp_dir(container_id, "load-project") as shared_dir:
            for i in range(0, len(files), batch_size):
                chunk = files[i:i + batch_size]
                logger.debug("Processing chunk %d of %d", i // batch_size + 1, total_batches)

                contents = await asyncio.gather(
                    *(self._load_one(container, rel, shared_dir) for rel in chunk)
                )
                for rel, content in zip(chunk, contents):
                    if content is not None and content.strip():
                        project_files[rel] = content

                if i + batch_size < len(files):
                    await asyncio.sleep(self.config.batch_pause_s)

        logger.info("Loaded %d files from %s", len(project_files), container_id)
        return project_files

    async def list_text_paths(self, container_id: str) -> List[str]:
        """Workspace-relative paths of text files only, without content."""
        listing = await self.exec.run(
            container_id,
            shell.find_files(
                self.config.workspace_root,
                EXCLUDED_DIRS,
                excluded_names=[f"*.{ext}" for ext in BINARY_EXTENSIONS],
                classify=True,
            ),
            ExecUser.WORKSPACE,
        )
        _check_listing(listing, "list text files", container_id)
        return [p for p in parse_file_mime_output(listing.stdout) if INSTRUMENTATION_MARKER not in p]

    # ---------- mirror ----------

    async def mirror_to_host(self, container_id: str, dest_dir: Path) -> int:
        """
        Write the container's project files into ``dest_dir`` on the host so
        that finish() archives what is actually in the container.

        Returns:
            Number of files written.
        """
        files = await self.list_all_files(container_id)
        dest_dir = Path(dest_dir).resolve()

        def _write_all() -> int:
            written = 0
            for rel, content in files.items():
                target = (dest_dir / rel).resolve()
                if os.path.commonpath([dest_dir, target]) != str(dest_dir):
                    logger.warning("Skipping %s: resolves outside %s", rel, dest_dir)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
                written += 1
            return written

        written = await asyncio.to_thread(_write_all)
        logger.info("Mirrored %d files from %s into %s", written, container_id, dest_dir)
        return written
