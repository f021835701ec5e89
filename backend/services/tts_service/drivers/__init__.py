"""Speech provider implementations"""

from .base import SpeechProvider
from .edge import EdgeSpeechProvider
from .fishspeech import FishSpeechProvider
from .google import GoogleSpeechProvider
from .openai_tts import OpenAISpeechProvider
from .system import SystemSpeechProvider
from .xunfei import XunfeiSpeechProvider

__all__ = [
    "EdgeSpeechProvider",
    "FishSpeechProvider",
    "GoogleSpeechProvider",
    "OpenAISpeechProvider",
    "SpeechProvider",
    "SystemSpeechProvider",
    "XunfeiSpeechProvider",
]
