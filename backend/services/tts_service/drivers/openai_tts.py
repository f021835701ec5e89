from pathlib import Path
from typing import ClassVar

from openai import AsyncOpenAI, OpenAIError

from shared.exceptions import SynthesisConfigError, SynthesisTransientError
from shared.models import SynthesisOptions

from ..text import percent_to_factor
from .base import SpeechProvider


class OpenAISpeechProvider(SpeechProvider):
    """OpenAI TTS implementation using their text-to-speech API."""

    name: ClassVar[str] = "openai"
    default_voice: ClassVar[str] = "alloy"

    SUPPORTED_MODELS: ClassVar[list[str]] = ["tts-1", "tts-1-hd"]

    def __init__(self, api_key: str, base_url: str = "", model: str = "tts-1", **kwargs) -> None:
        """
        Initialize OpenAI TTS engine.

        Args:
            api_key: OpenAI API key
            base_url: Alternative OpenAI-compatible endpoint; empty uses the public API
            model: TTS model to use ("tts-1" or "tts-1-hd")
        """
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or None
        self.model = model if model in self.SUPPORTED_MODELS else "tts-1"
        self._client: AsyncOpenAI | None = None

    def check_credentials(self) -> None:
        if not self.api_key:
            raise SynthesisConfigError("OpenAI API Key not configured")

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        # OpenAI supports speed 0.25 to 4.0; volume and pitch are not adjustable
        speed = percent_to_factor(options.rate, 0.25, 4.0)
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=voice,
                input=text,
                response_format="mp3",
                speed=speed,
            )
        except OpenAIError as exc:
            raise SynthesisTransientError(f"OpenAI TTS synthesis failed: {exc!s}") from exc

        output_path.write_bytes(response.content)
