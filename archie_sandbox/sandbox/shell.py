# archie_sandbox/sandbox/shell.py
"""
The only place shell command strings are assembled.

Exec sessions run argument vectors wherever possible. The two compound steps
of a file write (``mkdir && chown`` and ``write && mv``) need ``/bin/sh -c``;
every value interpolated into those scripts goes through ``quote``. File
content never appears in a script as-is: it is base64-encoded first, so the
only characters that reach the shell are ``[A-Za-z0-9+/=]``.
"""

from __future__ import annotations

import base64
import shlex
from typing import Iterable, List

# Linux caps a single argv string at 128 KiB (MAX_ARG_STRLEN). Keep each
# base64 chunk well under that; a multiple of 4 so chunks decode independently.
B64_CHUNK_CHARS = 64 * 1024


def quote(value: str) -> str:
    """
    Quote ``value`` for safe interpolation into a POSIX shell script.

    Raises:
        ValueError: if ``value`` contains a NUL byte (cannot be carried in argv).
    """
    if "\x00" in value:
        raise ValueError("shell arguments cannot contain NUL bytes")
    return shlex.quote(value)


def sh(script: str) -> List[str]:
    """Wrap a script as an exec argv."""
    return ["/bin/sh", "-c", script]


def mkdir_chown(directory: str, owner: str) -> List[str]:
    d = quote(directory)
    return sh(f"mkdir -p -- {d} && chown -R {quote(owner)} -- {d}")


def b64_chunks(data: bytes, chunk_chars: int = B64_CHUNK_CHARS) -> List[str]:
    """Encode ``data`` and split it into independently decodable chunks."""
    if chunk_chars <= 0 or chunk_chars % 4:
        raise ValueError("chunk_chars must be a positive multiple of 4")
    encoded = base64.b64encode(data).decode("ascii")
    if not encoded:
        return [""]
    return [encoded[i:i + chunk_chars] for i in range(0, len(encoded), chunk_chars)]


def write_chunk(temp_path: str, chunk: str, *, append: bool) -> str:
    redirect = ">>" if append else ">"
    return f"printf '%s' {quote(chunk)} | base64 -d {redirect} {quote(temp_path)}"


def move(src: str, dst: str) -> str:
    return f"mv -f -- {quote(src)} {quote(dst)}"


def write_scripts(temp_path: str, final_path: str, data: bytes,
                  chunk_chars: int = B64_CHUNK_CHARS) -> List[List[str]]:
    """
    Build the exec argvs that write ``data`` to ``temp_path`` and rename it
    over ``final_path``. Small payloads need a single exec; large ones get
    one exec per chunk with the rename attached to the last.
    """
    chunks = b64_chunks(data, chunk_chars)
    scripts = [write_chunk(temp_path, chunk, append=i > 0) for i, chunk in enumerate(chunks)]
    scripts[-1] = f"{scripts[-1]} && {move(temp_path, final_path)}"
    return [sh(s) for s in scripts]


def remove(path: str) -> List[str]:
    return sh(f"rm -f -- {quote(path)}")


def find_files(root: str, excluded_dirs: Iterable[str], excluded_names: Iterable[str] = (),
               classify: bool = False) -> List[str]:
    """
    ``find`` every regular file under ``root``, pruning noise directories and
    file-name globs. With ``classify`` each hit is passed to ``file --mime-type``.
    """
    parts = [f"cd {quote(root)} && find . -type f"]
    parts += [f"! -path {quote(f'*/{d}/*')}" for d in excluded_dirs]
    parts += [f"! -name {quote(n)}" for n in excluded_names]
    if classify:
        parts.append("-exec file --mime-type -- {} +")
    return sh(" ".join(parts))
