import base64
import binascii
from pathlib import Path
from typing import Any, ClassVar

import aiohttp

from shared.exceptions import SynthesisConfigError, SynthesisTransientError
from shared.models import SynthesisOptions

from ..text import clamp, parse_signed_number, percent_to_factor
from .base import SpeechProvider

GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"


class GoogleSpeechProvider(SpeechProvider):
    """Google Cloud Text-to-Speech REST API authenticated with an API key."""

    name: ClassVar[str] = "google"
    default_voice: ClassVar[str] = "cmn-CN-Wavenet-A"

    def __init__(self, api_key: str, endpoint: str = GOOGLE_TTS_URL, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.endpoint = endpoint

    def check_credentials(self) -> None:
        if not self.api_key:
            raise SynthesisConfigError("Google Cloud API Key not configured")

    @staticmethod
    def language_code(voice: str) -> str:
        """Voice names start with the language code: cmn-CN-Wavenet-A -> cmn-CN."""
        parts = voice.split("-")
        if len(parts) >= 2:
            return "-".join(parts[:2])
        return "cmn-CN"

    def build_payload(self, text: str, voice: str, options: SynthesisOptions) -> dict[str, Any]:
        return {
            "input": {"text": text},
            "voice": {"languageCode": self.language_code(voice), "name": voice},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": percent_to_factor(options.rate, 0.25, 4.0),
                "pitch": clamp(parse_signed_number(options.pitch) / 5.0, -20.0, 20.0),
                "volumeGainDb": clamp(parse_signed_number(options.volume) * 0.16, -96.0, 16.0),
            },
        }

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        payload = self.build_payload(text, voice, options)
        async with (
            aiohttp.ClientSession() as session,
            session.post(self.endpoint, params={"key": self.api_key}, json=payload) as resp,
        ):
            if resp.status != 200:
                raise SynthesisTransientError(f"Google API failed with status {resp.status}: {await resp.text()}")
            result = await resp.json()

        try:
            audio = base64.b64decode(result.get("audioContent", ""), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SynthesisTransientError(f"Google API returned undecodable audio: {exc}") from exc
        output_path.write_bytes(audio)
