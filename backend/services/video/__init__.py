"""Video assembly: subtitle burning and ffmpeg composition."""

from .composer import MediaComposer, RenderOptions
from .subtitles import SubtitleRenderer, draw_subtitle, wrap_text

__all__ = ["MediaComposer", "RenderOptions", "SubtitleRenderer", "draw_subtitle", "wrap_text"]
