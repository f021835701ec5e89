"""Render orchestrator driving one narrated-video job from slides to final file."""

from __future__ import annotations

import asyncio
import tempfile
import time
from pathlib import Path

from services.jobs.store import JobStore
from services.presentation.converter import SlideRasterizer
from services.presentation.notes import NO_NOTES_TEXT, NotesExtractor
from services.presentation.parser import IMAGES_DIRNAME, PresentationParser
from services.tts_service.drivers.base import SpeechProvider
from services.tts_service.service import SpeechService
from services.tts_service.text import split_sentences
from services.video.composer import DEFAULT_DURATION, MediaComposer, RenderOptions
from services.video.subtitles import SubtitleRenderer
from shared.config import ServiceConfig
from shared.exceptions import DeckCastError, JobFatalError, JobNotFoundError
from shared.models import (
    DEFAULT_SUBTITLE_FONT_SIZE,
    Job,
    ParseResponse,
    PreviewRequest,
    RenderRequest,
    Segment,
)
from shared.utils import ensure_directory, generate_job_id, sanitize_filename, setup_logging

logger = setup_logging("render-orchestrator")

AUDIO_DIRNAME = "audio_render"

# Progress weighting: initialization, synthesis band, composition, completion
PROGRESS_INITIALIZED = 10
PROGRESS_SYNTHESIS_SPAN = 70
PROGRESS_COMPOSING = 85


def synthesis_progress(index: int, total: int) -> int:
    """Progress when segment ``index`` (zero-based) starts, spread over 10-80%."""
    if total <= 0:
        return PROGRESS_INITIALIZED
    return PROGRESS_INITIALIZED + int(index / total * PROGRESS_SYNTHESIS_SPAN)


def build_segments(request: RenderRequest, work_dir: Path) -> list[Segment]:
    """One segment per sentence; a slide without text still yields one silent segment."""
    segments: list[Segment] = []
    image_dir = work_dir / IMAGES_DIRNAME
    for slide in request.slides:
        image_path = image_dir / Path(slide.image_url).name
        if not slide.text.strip():
            segments.append(Segment(text="", image_path=image_path))
            continue
        for sentence in split_sentences(slide.text):
            segments.append(Segment(text=sentence, image_path=image_path))
    return segments


class RenderOrchestrator:
    """Coordinates parsing, synthesis and composition, publishing state to a JobStore."""

    def __init__(
        self,
        store: JobStore,
        cfg: ServiceConfig,
        speech_service: SpeechService | None = None,
        composer: MediaComposer | None = None,
        parser: PresentationParser | None = None,
    ) -> None:
        self.store = store
        self.config = cfg
        self.upload_root = Path(cfg.get("upload_root", "uploads"))
        self.speech_service = speech_service or SpeechService(cfg)
        self.composer = composer or MediaComposer(
            ffmpeg_binary=cfg.get("ffmpeg_binary", "ffmpeg"),
            ffprobe_binary=cfg.get("ffprobe_binary", "ffprobe"),
            subtitle_renderer=SubtitleRenderer(cfg.get("subtitle_font") or None),
            default_duration=float(cfg.get_pipeline_value("video.default_duration", DEFAULT_DURATION)),
        )
        self.parser = parser or PresentationParser(
            NotesExtractor(cfg.get_pipeline_value("notes.sentinel", NO_NOTES_TEXT)),
            SlideRasterizer(
                soffice_binary=cfg.get("soffice_binary") or None,
                pdftoppm_binary=cfg.get("pdftoppm_binary", "pdftoppm"),
                resolution=int(cfg.get_pipeline_value("rasterizer.resolution", 150)),
            ),
        )
        self._tasks: set[asyncio.Task] = set()

    def work_dir(self, job_id: str) -> Path:
        return self.upload_root / sanitize_filename(job_id)

    async def parse_upload(self, filename: str, data: bytes) -> ParseResponse:
        """Store an uploaded presentation under a fresh job directory and parse it."""
        job_id = generate_job_id()
        work_dir = self.work_dir(job_id)
        ensure_directory(work_dir)

        document_path = work_dir / sanitize_filename(filename)
        await asyncio.to_thread(document_path.write_bytes, data)
        logger.info(f"Parsing {document_path.name} for job {job_id}")

        slides = await self.parser.parse(job_id, document_path, work_dir)
        return ParseResponse(job_id=job_id, slides=slides)

    async def preview(self, request: PreviewRequest) -> Path:
        """Synthesize a single text into a temporary mp3; the caller removes it."""
        provider = self.speech_service.provider_for(request.engine_type)
        handle = tempfile.NamedTemporaryFile(prefix="preview-", suffix=".mp3", delete=False)
        handle.close()
        output_path = Path(handle.name)
        try:
            await self.speech_service.synthesize(
                provider, request.text, output_path, request.voice_name, request.options()
            )
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise
        return output_path

    def start_render(self, request: RenderRequest) -> Job:
        """Register the job and schedule the pipeline; returns without waiting for it.

        A job id that is still pending or processing raises JobConflictError and
        schedules nothing, so each job has at most one pipeline running.
        """
        work_dir = self.work_dir(request.job_id)
        if not work_dir.is_dir():
            raise JobNotFoundError(f"Job expired or not found: {request.job_id}")

        if request.subtitle_font_size <= 0:
            request = request.model_copy(update={"subtitle_font_size": DEFAULT_SUBTITLE_FONT_SIZE})

        job = self.store.create_job(request.job_id)
        task = asyncio.create_task(self.run_render(request), name=f"render-{request.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info(f"Queued render job {request.job_id} with {len(request.slides)} slides")
        return job

    async def run_render(self, request: RenderRequest) -> None:
        """Run the whole pipeline; every failure leaves the job Failed."""
        job_id = request.job_id
        started = time.monotonic()
        try:
            download_url = await self._execute(request)
        except JobFatalError as exc:
            logger.error(f"Render job {job_id} failed: {exc}")
            self.store.fail_job(job_id, str(exc))
            return
        except Exception as exc:
            logger.error(f"Unexpected error in render job {job_id}: {exc}", exc_info=True)
            self.store.fail_job(job_id, f"Unexpected error: {exc}")
            return

        self.store.complete_job(job_id, download_url)
        logger.info(f"Completed render job {job_id} in {time.monotonic() - started:.2f}s")

    async def _execute(self, request: RenderRequest) -> str:
        job_id = request.job_id
        work_dir = self.work_dir(job_id)
        self.store.update_progress(job_id, PROGRESS_INITIALIZED, "Initializing...")

        try:
            provider = self.speech_service.provider_for(request.engine_type)
        except DeckCastError as exc:
            raise JobFatalError(f"Invalid TTS engine: {exc}") from exc

        audio_dir = work_dir / AUDIO_DIRNAME
        ensure_directory(audio_dir)
        segments = build_segments(request, work_dir)
        await self._synthesize_segments(job_id, provider, request, segments, audio_dir)

        self.store.update_progress(job_id, PROGRESS_COMPOSING, "Rendering Video...")
        output_path = work_dir / f"output_{int(time.time())}.mp4"
        options = RenderOptions(
            enable_subtitles=request.enable_subtitles,
            font_size=request.subtitle_font_size,
        )
        try:
            await self.composer.compose_video(
                [segment.image_path for segment in segments],
                [segment.audio_path for segment in segments],
                [segment.text for segment in segments],
                output_path,
                options,
            )
        except DeckCastError as exc:
            raise JobFatalError(f"Video composition failed: {exc}") from exc

        return f"/uploads/{work_dir.name}/{output_path.name}"

    async def _synthesize_segments(
        self,
        job_id: str,
        provider: SpeechProvider,
        request: RenderRequest,
        segments: list[Segment],
        audio_dir: Path,
    ) -> None:
        """Synthesize segments strictly in order; the first exhausted segment aborts the job."""
        total = len(segments)
        options = request.options()
        for i, segment in enumerate(segments):
            self.store.update_progress(
                job_id, synthesis_progress(i, total), f"Synthesizing audio {i + 1}/{total}"
            )
            output_path = audio_dir / f"audio_{i}.mp3"
            try:
                await self.speech_service.synthesize(
                    provider, segment.text, output_path, request.voice_name, options
                )
            except DeckCastError as exc:
                raise JobFatalError(f"TTS failed for segment {i + 1}: {exc}") from exc
            segment.audio_path = output_path

    async def wait_idle(self) -> None:
        """Wait for every scheduled render task; used on shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
