"""Burn a subtitle onto a slide image.

Lines are built one character at a time so that CJK text, which has no spaces
between words, wraps as well as Latin text does.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from services.video.fonts import resolve_font_path
from shared.exceptions import SubtitleError
from shared.utils import setup_logging

logger = setup_logging("subtitle-renderer")

MAX_WIDTH_RATIO = 0.9
LINE_HEIGHT_RATIO = 1.5
BOTTOM_MARGIN = 50
HALO_OFFSET = 2
TEXT_COLOR = (255, 255, 255)
HALO_COLOR = (0, 0, 0)


def wrap_text(text: str, measure: Callable[[str], int], max_width: int) -> list[str]:
    """Greedily fill lines while the measured width stays within ``max_width``.

    The character that overflows a non-empty line starts the next one, so a
    single glyph wider than ``max_width`` still gets a line of its own.
    """
    lines: list[str] = []
    current = ""
    for char in text:
        candidate = current + char
        if current and measure(candidate) > max_width:
            lines.append(current)
            current = char
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def halo_offsets(radius: int = HALO_OFFSET) -> list[tuple[int, int]]:
    return [
        (dx, dy)
        for dy in range(-radius, radius + 1)
        for dx in range(-radius, radius + 1)
        if (dx, dy) != (0, 0)
    ]


class SubtitleRenderer:
    """Draw wrapped, outlined subtitle text near the bottom of an image."""

    def __init__(self, font_path: str | Path | None = None) -> None:
        self.font_path = font_path

    def load_font(self, font_size: int) -> ImageFont.FreeTypeFont:
        path = resolve_font_path(str(self.font_path) if self.font_path else None)
        if path is None:
            raise SubtitleError("no suitable font found for subtitles")
        try:
            return ImageFont.truetype(str(path), size=font_size)
        except OSError as exc:
            raise SubtitleError(f"failed to load font {path}: {exc}") from exc

    def layout(
        self, text: str, font: ImageFont.FreeTypeFont, font_size: int, width: int, height: int
    ) -> list[tuple[str, int, int]]:
        """Return (line, x, baseline_y) for every wrapped line, stacked up from the bottom margin."""

        def measure(value: str) -> int:
            return math.ceil(font.getlength(value))

        max_width = int(width * MAX_WIDTH_RATIO)
        padding_x = (width - max_width) // 2
        lines = wrap_text(text, measure, max_width)

        line_height = int(font_size * LINE_HEIGHT_RATIO)
        start_y = height - len(lines) * line_height - BOTTOM_MARGIN

        placed: list[tuple[str, int, int]] = []
        for i, line in enumerate(lines):
            x = max((width - measure(line)) // 2, padding_x)
            y = start_y + (i + 1) * line_height
            placed.append((line, x, y))
        return placed

    def draw(self, src_path: str | Path, dst_path: str | Path, text: str, font_size: int) -> Path:
        """Write a JPEG copy of ``src_path`` with ``text`` burned in."""
        try:
            with Image.open(src_path) as source:
                image = source.convert("RGB")
        except (OSError, UnidentifiedImageError) as exc:
            raise SubtitleError(f"failed to open image {src_path}: {exc}") from exc

        font = self.load_font(font_size)
        canvas = ImageDraw.Draw(image)
        offsets = halo_offsets()

        for line, x, y in self.layout(text, font, font_size, image.width, image.height):
            for dx, dy in offsets:
                canvas.text((x + dx, y + dy), line, font=font, fill=HALO_COLOR, anchor="ls")
            canvas.text((x, y), line, font=font, fill=TEXT_COLOR, anchor="ls")

        dst_path = Path(dst_path)
        try:
            image.save(dst_path, format="JPEG")
        except OSError as exc:
            raise SubtitleError(f"failed to write {dst_path}: {exc}") from exc
        return dst_path


def draw_subtitle(src_path: str | Path, dst_path: str | Path, text: str, font_size: int) -> Path:
    return SubtitleRenderer().draw(src_path, dst_path, text, font_size)
