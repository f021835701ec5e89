from pathlib import Path
from typing import ClassVar

from shared.exceptions import SynthesisTransientError
from shared.models import SynthesisOptions
from shared.utils import remove_quietly

from ..text import clamp, parse_signed_number
from .base import SpeechProvider, run_command

BASE_WORDS_PER_MINUTE = 175.0


class SystemSpeechProvider(SpeechProvider):
    """Operating-system voices via macOS ``say``, transcoded to MP3 with ffmpeg."""

    name: ClassVar[str] = "system"
    default_voice: ClassVar[str] = "Tingting"

    def __init__(self, say_binary: str = "say", ffmpeg_binary: str = "ffmpeg", **kwargs) -> None:
        super().__init__(**kwargs)
        self.say_binary = say_binary
        self.ffmpeg_binary = ffmpeg_binary

    @staticmethod
    def words_per_minute(rate: str) -> float:
        """`say` speaks about 175 wpm; "+20%" becomes 210."""
        factor = 1.0 + parse_signed_number(rate) / 100.0
        return clamp(BASE_WORDS_PER_MINUTE * factor, 1.0, 1000.0)

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        tmp_aiff = output_path.with_name(output_path.name + ".aiff")
        try:
            code, output = await run_command(
                self.say_binary,
                "-v", voice,
                "-r", f"{self.words_per_minute(options.rate):.0f}",
                "-o", str(tmp_aiff),
                text,
            )
            if code != 0:
                raise SynthesisTransientError(f"system tts failed with exit code {code}, output: {output[-500:]}")

            code, output = await run_command(
                self.ffmpeg_binary, "-i", str(tmp_aiff), "-y",
                "-acodec", "libmp3lame", "-qscale:a", "2",
                str(output_path),
            )
            if code != 0:
                raise SynthesisTransientError(f"ffmpeg conversion failed with exit code {code}, output: {output[-500:]}")
        finally:
            remove_quietly(tmp_aiff, self.logger)
