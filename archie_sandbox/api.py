# archie_sandbox/api.py
"""
FastAPI container endpoints

Thin request/response mapping onto the session manager and the file sync
engine. Every failure body has the same shape:

    {"error": <fixed summary>, "details": <diagnostic>, "category": <failure class>}

400 is used for caller input errors (missing fields, paths outside the
workspace, malformed bodies); everything else is 500.

Endpoints (all under /api/container):
- POST /start                 - build, create and start a dev container
- POST /finish                - archive the workspace and tear the container down
- POST /{container_id}/edit   - write a file
- POST /{container_id}/file   - read a file
- GET  /{container_id}/load-project - every project file with content
- GET  /{container_id}/load-paths   - text file paths only
- GET  /{container_id}/logs   - container log tail
"""

from __future__ import annotations

import logging
from typing import Optional

import docker
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Config
from .errors import OrchestratorError
from .sandbox.container_utils import ContainerResolver
from .sandbox.exec_channel import ExecChannel
from .sandbox.file_sync import FileSyncEngine
from .sandbox.locks import SessionLocks
from .sandbox.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/container", tags=["container"])


class FinishRequest(BaseModel):
    containerId: Optional[str] = None
    syncWorkspace: bool = False


class EditRequest(BaseModel):
    filePath: Optional[str] = None
    content: Optional[str] = None


class FileRequest(BaseModel):
    filePath: Optional[str] = None


def _failure(summary: str, exc: OrchestratorError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": summary, "details": exc.details, "category": exc.category},
    )


def _bad_request(summary: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": summary, "details": summary, "category": "ValidationFailure"},
    )


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_file_sync(request: Request) -> FileSyncEngine:
    return request.app.state.file_sync


@router.post("/start")
async def start_container(sessions: SessionManager = Depends(get_session_manager)):
    try:
        info = await sessions.create()
    except OrchestratorError as e:
        logger.error("Error starting container: %s", e.details)
        return _failure("Failed to start container", e)

    return {
        "success": True,
        "containerId": info.container_id,
        "port": info.port,
        "status": info.status.value,
    }


@router.post("/finish")
async def finish_container(body: FinishRequest, sessions: SessionManager = Depends(get_session_manager)):
    if not body.containerId:
        return _bad_request("Container ID is required")

    try:
        backup = await sessions.finish(body.containerId, sync_workspace=body.syncWorkspace)
    except OrchestratorError as e:
        logger.error("Error finishing container %s: %s", body.containerId, e.details)
        summary = {
            "ArchiveFailure": "Backup failed",
            "TeardownFailure": "Failed to stop container",
        }.get(e.category, "Operation failed")
        return _failure(summary, e)

    return {
        "success": True,
        "message": "Container stopped and backup created",
        "backupPath": str(backup),
    }


@router.post("/{container_id}/edit")
async def edit_file(container_id: str, body: EditRequest, files: FileSyncEngine = Depends(get_file_sync)):
    if not body.filePath or not body.content:
        return _bad_request("filePath and content are required")

    try:
        result = await files.write_file(container_id, body.filePath, body.content)
    except OrchestratorError as e:
        logger.error("Error modifying file in %s: %s", container_id, e.details)
        return _failure("Failed to modify file in container", e)

    return {
        "success": True,
        "message": "File updated in container",
        "containerId": container_id,
        "filePath": result.file_path,
        "contentLength": result.content_length,
    }


@router.get("/{container_id}/load-project")
async def load_project(container_id: str, files: FileSyncEngine = Depends(get_file_sync)):
    try:
        project_files = await files.list_all_files(container_id)
    except OrchestratorError as e:
        logger.error("Error loading project from %s: %s", container_id, e.details)
        return _failure("Failed to load project from container", e)

    return {
        "success": True,
        "containerId": container_id,
        "files": project_files,
        "fileCount": len(project_files),
    }


@router.get("/{container_id}/load-paths")
async def load_paths(container_id: str, files: FileSyncEngine = Depends(get_file_sync)):
    try:
        paths = await files.list_text_paths(container_id)
    except OrchestratorError as e:
        logger.error("Error loading paths from %s: %s", container_id, e.details)
        return _failure("Failed to load paths from container", e)

    return {"success": True, "containerId": container_id, "files": paths}


@router.post("/{container_id}/file")
async def get_file(container_id: str, body: FileRequest, files: FileSyncEngine = Depends(get_file_sync)):
    if not body.filePath:
        return _bad_request("filePath is required")

    try:
        content = await files.get_file(container_id, body.filePath)
    except OrchestratorError as e:
        logger.error("Error getting file from %s: %s", container_id, e.details)
        return _failure("Failed to get file from container", e)

    return {"success": True, "content": content}


@router.get("/{container_id}/logs")
async def get_logs(
    container_id: str,
    tail: int = Query(100, ge=0),
    timestamps: bool = Query(False),
    sessions: SessionManager = Depends(get_session_manager),
):
    try:
        lines = await sessions.logs(container_id, tail=tail, timestamps=timestamps)
    except OrchestratorError as e:
        logger.error("Error getting logs of %s: %s", container_id, e.details)
        return _failure("Failed to get container logs", e)

    return {"success": True, "containerId": container_id, "logs": lines, "count": len(lines)}


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": str(exc.errors()), "category": "ValidationFailure"},
    )


async def _internal_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc), "category": "InternalError"},
    )


def create_app(config: Optional[Config] = None, client=None) -> FastAPI:
    """
    Wire the orchestrator together and return the FastAPI app.

    Args:
        config: Configuration; defaults to Config.from_env().
        client: docker client; defaults to docker.from_env(). Tests pass a fake.
    """
    config = config or Config.from_env()
    client = client if client is not None else docker.from_env()

    locks = SessionLocks()
    resolver = ContainerResolver(client)
    exec_channel = ExecChannel(client, workspace_user=config.workspace_user)
    file_sync = FileSyncEngine(resolver, exec_channel, config, locks=locks)
    session_manager = SessionManager(client, config, file_sync, resolver=resolver, locks=locks)

    app = FastAPI(title="archie-sandbox")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.add_exception_handler(Exception, _internal_error)
    app.include_router(router)

    app.state.config = config
    app.state.docker = client
    app.state.file_sync = file_sync
    app.state.session_manager = session_manager
    return app
