# archie_sandbox/sandbox/archive.py
"""
Zip a directory tree into the backup archive.

The archive is written to a sibling temp file and renamed onto the
destination only after the zip has been closed, so ``build_archive``
returning means the bytes are on disk and the destination is never a
truncated zip.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import zipfile
from pathlib import Path

from ..errors import ArchiveFailure

logger = logging.getLogger(__name__)


def build_archive_sync(source_dir: Path, dest: Path) -> Path:
    source_dir = Path(source_dir)
    dest = Path(dest)
    if not source_dir.is_dir():
        raise ArchiveFailure(f"Workspace directory not found: {source_dir}")

    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".part", dir=dest.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)

    try:
        with zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as zf:
            for path in sorted(source_dir.rglob("*")):
                # never archive the archive itself if it lives inside the tree
                if path.resolve() in (tmp_path.resolve(), dest.resolve()):
                    continue
                arcname = path.relative_to(source_dir).as_posix()
                if path.is_dir():
                    zf.write(path, arcname + "/")
                elif path.is_file():
                    zf.write(path, arcname)
        os.replace(tmp_path, dest)
    except ArchiveFailure:
        raise
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        raise ArchiveFailure(f"Backup failed: {e}")
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning("Could not remove partial archive %s: %s", tmp_path, e)

    logger.info("Archived %s to %s (%d bytes)", source_dir, dest, dest.stat().st_size)
    return dest


async def build_archive(source_dir: Path, dest: Path) -> Path:
    return await asyncio.to_thread(build_archive_sync, source_dir, dest)
