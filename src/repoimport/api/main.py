"""
FastAPI entrypoint for the GitHub repository importer.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from .dependencies import client_identity, require_api_key, telemetry_enabled
from .telemetry import Telemetry
from ..errors import AuthError, ImporterError, NotFoundError
from ..services import BulkUploader, FixedWindowRateLimiter, RepositoryImporter
from ..settings import settings
from ..storage import Container, ContainerRegistry, LocalContentStore
from ..storage.containers import verify_password
from ..version import __version__


content_store = LocalContentStore()
registry = ContainerRegistry()
importer = RepositoryImporter(uploader=BulkUploader(content_store), registry=registry)
telemetry = Telemetry()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    limiter = FixedWindowRateLimiter()
    limiter.start()
    importer.rate_limiter = limiter
    try:
        yield
    finally:
        limiter.stop()
        importer.rate_limiter = None


app = FastAPI(title="GitHub Repository Importer", version=__version__, lifespan=lifespan)
github_router = APIRouter()


class ImportRequest(BaseModel):
    repoUrl: Optional[str] = None
    branch: Optional[str] = None


class RepoInfoPayload(BaseModel):
    owner: str
    repo: str
    branch: str
    description: str
    stars: int
    language: str


class ImportResponse(BaseModel):
    containerId: str
    containerName: str
    password: str
    sandboxUrl: str
    fileCount: int
    skippedCount: int
    totalSize: int
    repoInfo: RepoInfoPayload


class InfoResponse(BaseModel):
    owner: str
    repo: str
    branch: str
    description: str
    stars: int
    forks: int
    language: str
    size: int
    sizeHuman: str
    isTooBig: bool
    defaultBranch: str


class VerifyRequest(BaseModel):
    password: Optional[str] = None


class FilePayload(BaseModel):
    name: str
    type: str
    size: int
    url: str
    relativePath: str


class ContainerResponse(BaseModel):
    id: str
    name: str
    readOnly: bool
    maxViews: int
    currentViews: int
    createdAt: float
    lastAccessed: float
    files: List[FilePayload]


class TelemetryResponse(BaseModel):
    imports: Dict[str, Any]
    info: Dict[str, Any]
    recent_events: List[Dict[str, Any]]


@app.exception_handler(ImporterError)
async def importer_error_handler(_request: Request, exc: ImporterError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = [
        str(error["loc"][-1])
        for error in exc.errors()
        if error.get("loc") and isinstance(error["loc"][-1], str)
    ]
    message = "Invalid request"
    if fields:
        message = f"{message}: {', '.join(sorted(set(fields)))}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@github_router.post(
    "/import", response_model=ImportResponse, status_code=status.HTTP_201_CREATED
)
def import_repository(
    request: ImportRequest, client_id: str = Depends(client_identity)
) -> ImportResponse:
    start_time = time.time()
    try:
        result = importer.import_repository(
            request.repoUrl, branch=request.branch, client_id=client_id
        )
    except ImporterError as exc:
        _record_import_telemetry(
            start_time,
            ok=False,
            metadata={"locator": request.repoUrl, "status": exc.status_code},
        )
        raise

    _record_import_telemetry(
        start_time,
        ok=True,
        files=result.file_count,
        skipped=result.skipped_count,
        metadata={"container": result.container_name, "failed": result.failed_count},
    )
    info = result.repo_info
    return ImportResponse(
        containerId=result.container_id,
        containerName=result.container_name,
        password=result.password,
        sandboxUrl=result.sandbox_url,
        fileCount=result.file_count,
        skippedCount=result.skipped_count,
        totalSize=result.total_size_bytes,
        repoInfo=RepoInfoPayload(
            owner=info.owner,
            repo=info.repo,
            branch=info.branch,
            description=info.description,
            stars=info.stars,
            language=info.language,
        ),
    )


@github_router.get("/info", response_model=InfoResponse)
def repository_info(url: Optional[str] = None) -> InfoResponse:
    start_time = time.time()
    try:
        info = importer.repository_info(url)
    except ImporterError as exc:
        _record_info_telemetry(start_time, ok=False, metadata={"locator": url, "status": exc.status_code})
        raise
    _record_info_telemetry(start_time, ok=True, metadata={"repo": f"{info.owner}/{info.repo}"})
    return InfoResponse(
        owner=info.owner,
        repo=info.repo,
        branch=info.branch,
        description=info.description,
        stars=info.stars,
        forks=info.forks,
        language=info.language,
        size=info.size_kb,
        sizeHuman=info.size_human,
        isTooBig=info.is_too_big,
        defaultBranch=info.default_branch,
    )


app.include_router(github_router, prefix="/api/github")
app.include_router(github_router)


@app.get("/api/containers/recent")
def recent_containers() -> List[Dict[str, object]]:
    return [container.summary() for container in registry.list_recent()]


def _container_response(container: Container) -> ContainerResponse:
    return ContainerResponse(
        id=container.id,
        name=container.name,
        readOnly=container.read_only,
        maxViews=container.max_views,
        currentViews=container.current_views,
        createdAt=container.created_at,
        lastAccessed=container.last_accessed,
        files=[
            FilePayload(
                name=item.original_name,
                type=item.mime_type,
                size=item.size_bytes,
                url=item.content_url,
                relativePath=item.relative_path,
            )
            for item in container.files
        ],
    )


@app.get("/api/containers/{container_id}", response_model=ContainerResponse)
def get_container(container_id: str) -> ContainerResponse:
    container = registry.get(container_id)
    if container is None:
        raise NotFoundError("Container not found")
    return _container_response(container)


@app.post("/api/containers/{container_id}/verify", response_model=ContainerResponse)
def verify_container(container_id: str, request: VerifyRequest) -> ContainerResponse:
    container = registry.get(container_id)
    if container is None:
        raise NotFoundError("Container not found")
    if not request.password or not verify_password(request.password, container.password_hash):
        raise AuthError("Incorrect password")
    return _container_response(registry.touch(container_id) or container)


@app.get("/uploads/{folder}/{public_id}")
def download_content(folder: str, public_id: str) -> FileResponse:
    path = content_store.resolve(f"{folder}/{public_id}")
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path)


@app.get(
    "/telemetry",
    response_model=TelemetryResponse,
    dependencies=[Depends(require_api_key)],
)
def telemetry_snapshot(enabled: bool = Depends(telemetry_enabled)) -> TelemetryResponse:
    if not enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Telemetry disabled"
        )
    data = telemetry.snapshot()
    return TelemetryResponse(**data)


def _record_import_telemetry(
    start_time: float,
    ok: bool,
    files: int = 0,
    skipped: int = 0,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    if not settings.telemetry_enabled:
        return
    telemetry.record_import(
        duration_ms=(time.time() - start_time) * 1000.0,
        ok=ok,
        files=files,
        skipped=skipped,
        metadata=metadata,
    )


def _record_info_telemetry(
    start_time: float, ok: bool, metadata: Optional[Dict[str, Any]] = None
) -> None:
    if not settings.telemetry_enabled:
        return
    telemetry.record_info(
        duration_ms=(time.time() - start_time) * 1000.0, ok=ok, metadata=metadata
    )


def run() -> None:
    """CLI entrypoint to run the FastAPI server."""
    uvicorn.run(
        "repoimport.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )
