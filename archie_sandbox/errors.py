# archie_sandbox/errors.py
"""
Failure taxonomy for the orchestrator.

Every failure raised by the sandbox layer is an ``OrchestratorError``. The
HTTP surface catches it at the operation boundary and turns it into a
``{error, details, category}`` body: ``category`` is the machine-facing class
name below, ``details`` is the underlying diagnostic text.

Temp-resource cleanup failures are never raised; they are logged where they
happen so they cannot mask the result of the data operation.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class. ``category`` is exposed to HTTP callers."""

    category = "OrchestratorError"
    # 400 for caller input errors, 500 for everything else
    status_code = 500

    def __init__(self, details: str, *, stage: str | None = None):
        super().__init__(details)
        self.details = details
        self.stage = stage


class ValidationFailure(OrchestratorError):
    category = "ValidationFailure"
    status_code = 400


class InvalidSessionState(ValidationFailure):
    """A lifecycle transition was requested that would move a session backwards."""

    category = "InvalidSessionState"


class BuildFailure(OrchestratorError):
    category = "BuildFailure"


class ContainerCreateFailure(OrchestratorError):
    category = "ContainerCreateFailure"


class ContainerStartFailure(OrchestratorError):
    category = "ContainerStartFailure"


class ContainerNotFound(OrchestratorError):
    category = "ContainerNotFound"


class ExecFailure(OrchestratorError):
    """An exec session errored or its command exited non-zero."""

    category = "ExecFailure"


class FileTransferFailure(OrchestratorError):
    """Copying a file out of the container failed."""

    category = "FileTransferFailure"


class WriteVerificationFailed(OrchestratorError):
    category = "WriteVerificationFailed"


class ArchiveFailure(OrchestratorError):
    category = "ArchiveFailure"


class TeardownFailure(OrchestratorError):
    """Stop/remove failed after the backup archive was written."""

    category = "TeardownFailure"
