"""Presentation intake: speaker-notes extraction and slide rasterization."""

from .converter import SlideRasterizer
from .notes import NO_NOTES_TEXT, NotesExtractor, extract_notes
from .parser import PresentationParser

__all__ = ["NO_NOTES_TEXT", "NotesExtractor", "PresentationParser", "SlideRasterizer", "extract_notes"]
