"""
DeckCast Backend - Unified Application Entry Point
Exposes presentation parsing, voice preview and narrated video rendering over HTTP
"""

from pathlib import Path

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.background import BackgroundTask

from services.jobs.store import JobStore
from services.narration.orchestrator import RenderOrchestrator
from services.tts_service.factory import available_engines
from shared.exceptions import (
    DeckCastError,
    FatalExtractionError,
    JobConflictError,
    JobNotFoundError,
    SynthesisConfigError,
)
from shared.models import (
    Job,
    ParseResponse,
    PreviewRequest,
    RenderRequest,
    RenderStarted,
)
from shared.utils import config, ensure_directory, remove_quietly, setup_logging

logger = setup_logging("deckcast-backend")


def create_app(orchestrator: RenderOrchestrator | None = None) -> FastAPI:
    """Build the API around an orchestrator; the default one owns a fresh JobStore."""
    orchestrator = orchestrator or RenderOrchestrator(JobStore(), config)
    store = orchestrator.store

    app = FastAPI(
        title="DeckCast Backend API",
        description="Turn a slide deck and its speaker notes into a narrated video.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "Health", "description": "Service health and status endpoints"},
            {"name": "Presentation", "description": "Upload and parse presentations"},
            {"name": "Text-to-Speech", "description": "Voice preview"},
            {"name": "Rendering", "description": "Narrated video jobs"},
        ],
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get("allowed_origins", ["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    upload_root = orchestrator.upload_root
    ensure_directory(upload_root)
    app.mount("/uploads", StaticFiles(directory=str(upload_root)), name="uploads")

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "engines": available_engines(),
        }

    @app.post("/parse", response_model=ParseResponse, tags=["Presentation"])
    async def parse_presentation(file: UploadFile = File(...)) -> ParseResponse:
        """Upload a .pptx file and return its slides paired with speaker notes."""
        filename = file.filename or "presentation.pptx"
        if Path(filename).suffix.lower() != ".pptx":
            raise HTTPException(status_code=400, detail="Only .pptx presentations are supported")

        try:
            data = await file.read()
            return await orchestrator.parse_upload(filename, data)
        except FatalExtractionError as e:
            logger.error(f"Failed to parse {filename}: {e}")
            raise HTTPException(status_code=500, detail=str(e)) from e

    @app.post("/preview", tags=["Text-to-Speech"])
    async def preview_voice(request: PreviewRequest) -> FileResponse:
        """Synthesize a short sample with the requested engine and voice."""
        try:
            output_path = await orchestrator.preview(request)
        except SynthesisConfigError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except DeckCastError as e:
            logger.error(f"Preview synthesis failed: {e}")
            raise HTTPException(status_code=500, detail=f"Preview failed: {e!s}") from e

        return FileResponse(
            output_path,
            media_type="audio/mpeg",
            filename="preview.mp3",
            background=BackgroundTask(remove_quietly, output_path, logger),
        )

    @app.post("/render", response_model=RenderStarted, tags=["Rendering"])
    async def start_render(request: RenderRequest) -> RenderStarted:
        """Start rendering in the background. Poll /jobs/{job_id} for progress."""
        try:
            job = orchestrator.start_render(request)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except JobConflictError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return RenderStarted(job_id=job.id)

    @app.get("/jobs/{job_id}", response_model=Job, tags=["Rendering"])
    async def get_job(job_id: str) -> Job:
        job = store.get_job(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
        return job

    @app.get("/tasks", response_model=list[Job], tags=["Rendering"])
    async def list_tasks() -> list[Job]:
        """All known jobs, newest first."""
        return sorted(store.list_jobs(), key=lambda job: job.created_at, reverse=True)

    return app


app = create_app()
