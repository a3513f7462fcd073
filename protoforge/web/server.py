"""FastAPI dashboard exposing the generation pipeline over HTTP.

Routes:

* ``GET  /``                               dashboard page
* ``GET  /api/providers``                  registered providers
* ``GET  /api/projects``                   materialized projects
* ``GET  /api/project/{name}``             a project's ``prototype.json``
* ``GET  /api/project/{name}/download``    ZIP archive (built on demand)
* ``POST /api/generate``                   start a generation job
* ``GET  /api/generate/{job_id}/events``   SSE progress stream for a job

Per-request provider overrides are applied to a copy of the configured
``ProviderConfig``; stored settings are never mutated by a request.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from protoforge import __version__
from protoforge.config import Settings
from protoforge.errors import ProtoForgeError
from protoforge.packaging import archive_path_for, create_zip
from protoforge.parser.models import Category, GenerationRequest
from protoforge.providers import PROVIDERS, available_providers
from protoforge.scaffolder.materializer import METADATA_FILE, list_projects, load_project
from protoforge.web.jobs import GenerationJob, JobRegistry

logger = logging.getLogger(__name__)

_STATIC_DIR = Path(__file__).parent / "static"

router = APIRouter()


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    """Body of ``POST /api/generate``."""

    description: str = Field(..., min_length=1)
    type: Optional[str] = Field(default=None, description="hardware | software | hybrid")
    provider: Optional[str] = Field(default=None, description="Provider override for this request")
    model: Optional[str] = Field(default=None, description="Model override for this request")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_settings(request: Request) -> Settings:
    provider: Callable[[], Settings] = request.app.state.settings_provider
    return provider()


def get_jobs(request: Request) -> JobRegistry:
    return request.app.state.jobs


def _project_dir(settings: Settings, name: str) -> Path:
    """Resolve *name* inside the output directory or raise 404."""
    root = settings.output_dir.resolve()
    candidate = (root / name).resolve()
    if name in ("", ".", "..") or candidate.parent != root or not candidate.is_dir():
        raise HTTPException(status_code=404, detail="Project not found")
    return candidate


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    return HTMLResponse((_STATIC_DIR / "index.html").read_text(encoding="utf-8"))


@router.get("/api/providers")
async def providers() -> list[dict[str, Any]]:
    return [info.model_dump() for info in available_providers()]


@router.get("/api/projects")
async def projects(settings: Settings = Depends(get_settings)) -> list[dict[str, Any]]:
    return list_projects(settings.output_dir)


@router.get("/api/project/{name}")
async def project(name: str, settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    project_dir = _project_dir(settings, name)
    if not (project_dir / METADATA_FILE).is_file():
        raise HTTPException(status_code=404, detail="Project not found")
    return load_project(project_dir).to_json_dict()


@router.get("/api/project/{name}/download")
async def download(name: str, settings: Settings = Depends(get_settings)) -> FileResponse:
    project_dir = _project_dir(settings, name)
    archive = archive_path_for(project_dir)
    if not archive.is_file():
        try:
            archive = await create_zip(project_dir)
        except ProtoForgeError as exc:
            raise HTTPException(status_code=500, detail=exc.message) from exc
    return FileResponse(archive, media_type="application/zip", filename=archive.name)


@router.post("/api/generate")
async def generate(
    body: GenerateRequest,
    settings: Settings = Depends(get_settings),
    jobs: JobRegistry = Depends(get_jobs),
) -> dict[str, Any]:
    if not body.description.strip():
        raise HTTPException(status_code=422, detail="Description must not be empty")

    overrides: dict[str, Any] = {}
    if body.provider:
        if body.provider.strip().lower() not in PROVIDERS:
            raise HTTPException(status_code=400, detail=f"Unknown provider: {body.provider}")
        overrides["provider_id"] = body.provider.strip().lower()
    if body.model:
        overrides["model_name"] = body.model
    provider_config = settings.provider.model_copy(update=overrides)

    request = GenerationRequest(description=body.description, category=Category.coerce(body.type))
    job = jobs.start(request, provider_config, settings.output_dir)
    logger.info("Started generation job %s (%s)", job.id, provider_config.provider_id)
    return {"status": "started", "id": job.id}


async def job_events(job: GenerationJob) -> AsyncIterator[dict[str, str]]:
    """Format a job's events for ``EventSourceResponse``."""
    index = 0
    async for event in job.stream():
        index += 1
        yield {"event": event["event"], "data": json.dumps(event["data"]), "id": str(index)}


@router.get("/api/generate/{job_id}/events")
async def generation_events(job_id: str, jobs: JobRegistry = Depends(get_jobs)) -> EventSourceResponse:
    job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return EventSourceResponse(job_events(job))


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | Callable[[], Settings],
    jobs: JobRegistry | None = None,
) -> FastAPI:
    """Build the dashboard application.

    Args:
        settings: Fixed settings, or a zero-argument callable (e.g. a
            ``ConfigStore`` property getter) re-read on every request.
        jobs: Job registry; a fresh one by default.
    """
    app = FastAPI(title="ProtoForge", version=__version__)
    if isinstance(settings, Settings):
        fixed = settings
        app.state.settings_provider = lambda: fixed
    else:
        app.state.settings_provider = settings
    app.state.jobs = jobs or JobRegistry()
    app.include_router(router)
    return app


def serve(settings: Settings, host: str | None = None, port: int | None = None) -> None:
    """Run the dashboard with uvicorn (blocking)."""
    import uvicorn

    uvicorn.run(
        create_app(settings),
        host=host or settings.web.host,
        port=port or settings.web.port,
        log_level="warning",
    )
