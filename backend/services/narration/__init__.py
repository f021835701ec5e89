"""Narrated video rendering.

The orchestrator drives the complete pipeline:
- Sentence segmentation of slide notes
- Text-to-speech synthesis, one audio file per sentence
- Optional subtitle burning
- Clip composition and concatenation
"""

__version__ = "1.0.0"
