"""Slide rasterization through LibreOffice and poppler.

The document is first converted to PDF (more reliable than direct image export,
which often yields only the first slide), then every PDF page is written as a
JPEG. Both tools are treated as black boxes.
"""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path

from shared.exceptions import FatalExtractionError
from shared.utils import ensure_directory, setup_logging

logger = setup_logging("slide-rasterizer")

MACOS_SOFFICE = "/Applications/LibreOffice.app/Contents/MacOS/soffice"
IMAGE_PREFIX = "slide"
IMAGE_SUFFIXES = (".jpg", ".jpeg")
TRAILING_NUMBER = re.compile(r"(\d+)$")


def page_number(path: str | Path) -> int:
    """Page number embedded at the end of a file stem (slide-7.jpg -> 7, slide-07.jpg -> 7)."""
    match = TRAILING_NUMBER.search(Path(path).stem)
    return int(match.group(1)) if match else 0


def find_soffice(configured: str | None = None) -> str:
    if configured:
        return configured
    found = shutil.which("soffice")
    if found:
        return found
    if Path(MACOS_SOFFICE).exists():
        return MACOS_SOFFICE
    raise FatalExtractionError(
        "LibreOffice not found. Install it or ensure 'soffice' is in your PATH"
    )


class SlideRasterizer:
    """Render every slide of a document to a JPEG image."""

    def __init__(
        self,
        soffice_binary: str | None = None,
        pdftoppm_binary: str = "pdftoppm",
        resolution: int = 150,
    ) -> None:
        self.soffice_binary = soffice_binary
        self.pdftoppm_binary = pdftoppm_binary
        self.resolution = resolution

    async def convert(self, document_path: str | Path, output_dir: str | Path) -> list[Path]:
        """Return the generated image paths sorted by page number."""
        document_path = Path(document_path)
        output_dir = Path(output_dir)
        ensure_directory(output_dir)

        soffice = find_soffice(self.soffice_binary)
        await self._run(
            [soffice, "--headless", "--convert-to", "pdf", "--outdir", str(output_dir), str(document_path)],
            "libreoffice conversion to pdf",
        )

        pdf_path = output_dir / f"{document_path.stem}.pdf"
        if not pdf_path.exists():
            raise FatalExtractionError(f"expected pdf file not found: {pdf_path}")

        await self._run(
            [
                self.pdftoppm_binary,
                "-jpeg",
                "-r",
                str(self.resolution),
                str(pdf_path),
                str(output_dir / IMAGE_PREFIX),
            ],
            "pdftoppm conversion",
        )

        images = [
            path
            for path in output_dir.iterdir()
            if path.name.startswith(IMAGE_PREFIX) and path.suffix.lower() in IMAGE_SUFFIXES
        ]
        if not images:
            raise FatalExtractionError("no images found after pdftoppm conversion")

        images.sort(key=page_number)
        logger.info(f"Rasterized {len(images)} slides from {document_path.name}")
        return images

    @staticmethod
    async def _run(command: list[str], description: str) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise FatalExtractionError(f"{description} failed to start: {exc}") from exc

        output, _ = await process.communicate()
        if process.returncode != 0:
            text = output.decode("utf-8", errors="replace")[-2000:]
            raise FatalExtractionError(
                f"{description} failed with exit code {process.returncode}, output: {text}"
            )
