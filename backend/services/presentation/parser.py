"""Parse an uploaded presentation into slide images paired with their notes."""

from __future__ import annotations

import asyncio
from pathlib import Path

from services.presentation.converter import SlideRasterizer
from services.presentation.notes import NotesExtractor
from shared.exceptions import FatalExtractionError
from shared.models import Slide, SlideImage
from shared.utils import setup_logging

logger = setup_logging("presentation-parser")

IMAGES_DIRNAME = "images"


class PresentationParser:
    """Run notes extraction and rasterization concurrently and join the results."""

    def __init__(
        self,
        notes_extractor: NotesExtractor | None = None,
        rasterizer: SlideRasterizer | None = None,
    ) -> None:
        self.notes_extractor = notes_extractor or NotesExtractor()
        self.rasterizer = rasterizer or SlideRasterizer()

    async def parse(self, job_id: str, document_path: str | Path, work_dir: str | Path) -> list[SlideImage]:
        """Return slides in presentation order with their image URLs.

        Both tasks always run to completion. When both fail, only the first
        error (notes before images) is reported.
        """
        image_dir = Path(work_dir) / IMAGES_DIRNAME
        results = await asyncio.gather(
            asyncio.to_thread(self.notes_extractor.extract, document_path),
            self.rasterizer.convert(document_path, image_dir),
            return_exceptions=True,
        )
        slides_result, images_result = results

        for label, result in (("ppt parsing", slides_result), ("image conversion", images_result)):
            if isinstance(result, BaseException):
                logger.error(f"{label} failed for job {job_id}: {result}")
                raise FatalExtractionError(f"{label} failed: {result}") from result

        return pair_slides(job_id, slides_result, images_result)


def image_url(job_id: str, image_path: str | Path) -> str:
    return f"/uploads/{job_id}/{IMAGES_DIRNAME}/{Path(image_path).name}"


def pair_slides(job_id: str, slides: list[Slide], images: list[Path]) -> list[SlideImage]:
    """Pair the Nth note with the Nth image; extra notes or images are dropped."""
    count = min(len(slides), len(images))
    if len(slides) != len(images):
        logger.warning(
            f"Job {job_id}: {len(slides)} slides with notes but {len(images)} images; using {count}"
        )
    return [
        SlideImage(index=i, image_url=image_url(job_id, images[i]), text=slides[i].note_text)
        for i in range(count)
    ]
