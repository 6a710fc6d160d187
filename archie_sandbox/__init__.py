# archie_sandbox/__init__.py

from .api import create_app
from .config import Config
from .sandbox.file_sync import FileSyncEngine
from .sandbox.session_manager import SessionManager

__all__ = [
    "create_app",
    "Config",
    "FileSyncEngine",
    "SessionManager",
]
