from pathlib import Path
from typing import Any, ClassVar

import aiohttp

from shared.exceptions import SynthesisConfigError, SynthesisTransientError
from shared.models import SynthesisOptions

from ..text import parse_signed_number, percent_to_factor
from .base import SpeechProvider

FISH_AUDIO_URL = "https://api.fish.audio/v1/tts"


class FishSpeechProvider(SpeechProvider):
    """Fish Speech REST API, hosted (fish.audio) or self-hosted."""

    name: ClassVar[str] = "fishspeech"
    default_voice: ClassVar[str] = "7f02fd683e0d4050a133900c4644377b"

    def __init__(self, api_key: str = "", api_url: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.api_url = api_url or FISH_AUDIO_URL

    def check_credentials(self) -> None:
        # A self-hosted server may run without authentication
        if self.api_url == FISH_AUDIO_URL and not self.api_key:
            raise SynthesisConfigError("Fish Speech API Key not configured")

    def build_payload(self, text: str, voice: str, options: SynthesisOptions) -> dict[str, Any]:
        return {
            "text": text,
            "reference_id": voice,
            "format": "mp3",
            "prosody": {
                "speed": percent_to_factor(options.rate, 0.5, 2.0),
                "volume": parse_signed_number(options.volume) / 10.0,
            },
        }

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with (
            aiohttp.ClientSession() as session,
            session.post(self.api_url, json=self.build_payload(text, voice, options), headers=headers) as resp,
        ):
            if resp.status != 200:
                raise SynthesisTransientError(
                    f"Fish Speech API failed with status {resp.status}: {await resp.text()}"
                )
            audio = await resp.read()

        output_path.write_bytes(audio)
