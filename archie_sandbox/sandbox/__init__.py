# archie_sandbox/sandbox/__init__.py

from .exec_channel import ExecChannel, ExecResult, ExecUser
from .file_sync import FileSyncEngine, WriteResult, normalize_workspace_path
from .session_manager import SessionInfo, SessionManager, SessionStatus

__all__ = [
    "ExecChannel",
    "ExecResult",
    "ExecUser",
    "FileSyncEngine",
    "WriteResult",
    "normalize_workspace_path",
    "SessionInfo",
    "SessionManager",
    "SessionStatus",
]
