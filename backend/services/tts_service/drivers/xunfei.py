import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from typing import Any, ClassVar
from urllib.parse import urlencode, urlparse

import aiohttp

from shared.exceptions import SynthesisConfigError, SynthesisTransientError
from shared.models import SynthesisOptions

from ..text import percent_to_scale
from .base import SpeechProvider

XUNFEI_TTS_URL = "wss://tts-api.xfyun.cn/v2/tts"
LAST_FRAME_STATUS = 2


def build_auth_url(host_url: str, api_key: str, api_secret: str, now: datetime | None = None) -> str:
    """Sign the websocket handshake: HMAC-SHA256 over host, date and request line."""
    parsed = urlparse(host_url)
    date = format_datetime(now or datetime.now(timezone.utc), usegmt=True)
    signature_origin = "\n".join(
        [f"host: {parsed.netloc}", f"date: {date}", f"GET {parsed.path} HTTP/1.1"]
    )
    digest = hmac.new(api_secret.encode("utf-8"), signature_origin.encode("utf-8"), hashlib.sha256).digest()
    signature = base64.b64encode(digest).decode("utf-8")
    authorization_origin = (
        f'api_key="{api_key}", algorithm="hmac-sha256", '
        f'headers="host date request-line", signature="{signature}"'
    )
    authorization = base64.b64encode(authorization_origin.encode("utf-8")).decode("utf-8")
    query = urlencode({"authorization": authorization, "date": date, "host": parsed.netloc})
    return f"{host_url}?{query}"


class XunfeiSpeechProvider(SpeechProvider):
    """iFlytek streaming TTS over a signed websocket."""

    name: ClassVar[str] = "xunfei"
    default_voice: ClassVar[str] = "xiaoyan"

    def __init__(
        self,
        app_id: str,
        api_key: str,
        api_secret: str,
        host_url: str = XUNFEI_TTS_URL,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.app_id = app_id
        self.api_key = api_key
        self.api_secret = api_secret
        self.host_url = host_url

    def check_credentials(self) -> None:
        if not (self.app_id and self.api_key and self.api_secret):
            raise SynthesisConfigError("Xunfei credentials not configured")

    def build_frame(self, text: str, voice: str, options: SynthesisOptions) -> dict[str, Any]:
        return {
            "common": {"app_id": self.app_id},
            "business": {
                "aue": "lame",
                "sfl": 1,
                "vcn": voice,
                "speed": percent_to_scale(options.rate),
                "volume": percent_to_scale(options.volume),
                "pitch": percent_to_scale(options.pitch),
                "bgs": 0,
                "tte": "UTF8",
            },
            "data": {
                "status": LAST_FRAME_STATUS,
                "text": base64.b64encode(text.encode("utf-8")).decode("utf-8"),
            },
        }

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        url = build_auth_url(self.host_url, self.api_key, self.api_secret)
        chunks: list[bytes] = []
        finished = False

        async with aiohttp.ClientSession() as session, session.ws_connect(url, heartbeat=10) as ws:
            await ws.send_json(self.build_frame(text, voice, options))
            async for message in ws:
                if message.type != aiohttp.WSMsgType.TEXT:
                    continue

                payload = json.loads(message.data)
                code = payload.get("code", 0)
                if code != 0:
                    raise SynthesisTransientError(
                        f"xunfei api error code: {code}, message: {payload.get('message')}"
                    )

                data = payload.get("data") or {}
                if data.get("audio"):
                    chunks.append(base64.b64decode(data["audio"]))
                if data.get("status") == LAST_FRAME_STATUS:
                    finished = True
                    break

        if not finished:
            raise SynthesisTransientError("xunfei stream closed before the last frame")

        if not chunks:
            raise SynthesisTransientError("xunfei returned no audio")
        # Written only after the last frame
        output_path.write_bytes(b"".join(chunks))
