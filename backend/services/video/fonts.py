"""Subtitle font lookup."""

from collections.abc import Sequence
from pathlib import Path

# Highest priority first; CJK-capable fonts before Latin-only ones
FONT_CANDIDATES: tuple[str, ...] = (
    "msyh.ttf",
    "/System/Library/Fonts/STHeiti Medium.ttc",
    "/System/Library/Fonts/STHeiti Light.ttc",
    "/System/Library/Fonts/PingFang.ttc",
    "/Library/Fonts/Microsoft YaHei.ttf",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/noto-cjk/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
    "/usr/share/fonts/truetype/wqy/wqy-zenhei.ttc",
    "C:/Windows/Fonts/msyh.ttc",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "C:/Windows/Fonts/arial.ttf",
)


def resolve_font_path(preferred: str | None = None, candidates: Sequence[str] = FONT_CANDIDATES) -> Path | None:
    """Return the first existing font file, checking ``preferred`` before the static list."""
    search = [preferred, *candidates] if preferred else list(candidates)
    for candidate in search:
        path = Path(candidate)
        if path.is_file():
            return path
    return None
