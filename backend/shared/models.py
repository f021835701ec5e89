from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SUBTITLE_FONT_SIZE = 48


class JobStatus(str, Enum):
    """Lifecycle of a render job. Transitions only move forward."""
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)


class Slide(BaseModel):
    """Speaker notes of one slide, in presentation order."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1)
    note_text: str


class SlideImage(BaseModel):
    """A rasterized slide image paired with its narration text."""
    index: int = Field(default=0, ge=0)
    image_url: str
    text: str = ""


class ParseResponse(BaseModel):
    job_id: str
    slides: list[SlideImage]


class SynthesisOptions(BaseModel):
    """Engine-specific modifiers such as "+20%" or "-5Hz"; empty means neutral."""
    rate: str = ""
    volume: str = ""
    pitch: str = ""


class Segment(BaseModel):
    """One sentence of narration tied to one slide image."""
    text: str
    image_path: Path
    audio_path: Path | None = None


class PreviewRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Text to synthesize")
    engine_type: str = Field(..., description="Speech engine identifier")
    voice_name: str = Field(default="", description="Engine voice; empty selects the engine default")
    rate: str = ""
    volume: str = ""
    pitch: str = ""

    def options(self) -> SynthesisOptions:
        return SynthesisOptions(rate=self.rate, volume=self.volume, pitch=self.pitch)


class RenderRequest(BaseModel):
    job_id: str
    engine_type: str
    voice_name: str = ""
    rate: str = ""
    volume: str = ""
    pitch: str = ""
    slides: list[SlideImage]
    enable_subtitles: bool = False
    subtitle_font_size: int = DEFAULT_SUBTITLE_FONT_SIZE

    def options(self) -> SynthesisOptions:
        return SynthesisOptions(rate=self.rate, volume=self.volume, pitch=self.pitch)


class Job(BaseModel):
    id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    message: str = "Queued"
    download_url: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class RenderStarted(BaseModel):
    job_id: str
    message: str = "Rendering started"
