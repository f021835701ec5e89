"""Provider registry: one entry per supported speech engine."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from services.tts_service.drivers import (
    EdgeSpeechProvider,
    FishSpeechProvider,
    GoogleSpeechProvider,
    OpenAISpeechProvider,
    SpeechProvider,
    SystemSpeechProvider,
    XunfeiSpeechProvider,
)
from shared.config import ServiceConfig
from shared.exceptions import SynthesisConfigError


class EngineType(str, Enum):
    EDGE = "edge"
    SYSTEM = "system"
    XUNFEI = "xunfei"
    OPENAI = "openai"
    GOOGLE = "google"
    FISHSPEECH = "fishspeech"


ProviderBuilder = Callable[[ServiceConfig, dict[str, Any]], SpeechProvider]

PROVIDER_BUILDERS: dict[EngineType, ProviderBuilder] = {
    EngineType.EDGE: lambda cfg, retry: EdgeSpeechProvider(
        command=cfg.get("edge_tts_command", "edge-tts"), **retry
    ),
    EngineType.SYSTEM: lambda cfg, retry: SystemSpeechProvider(
        ffmpeg_binary=cfg.get("ffmpeg_binary", "ffmpeg"), **retry
    ),
    EngineType.XUNFEI: lambda cfg, retry: XunfeiSpeechProvider(
        app_id=cfg.get("xunfei_app_id", ""),
        api_key=cfg.get("xunfei_api_key", ""),
        api_secret=cfg.get("xunfei_api_secret", ""),
        **retry,
    ),
    EngineType.OPENAI: lambda cfg, retry: OpenAISpeechProvider(
        api_key=cfg.get("openai_api_key", ""), base_url=cfg.get("openai_base_url", ""), **retry
    ),
    EngineType.GOOGLE: lambda cfg, retry: GoogleSpeechProvider(api_key=cfg.get("google_api_key", ""), **retry),
    EngineType.FISHSPEECH: lambda cfg, retry: FishSpeechProvider(
        api_key=cfg.get("fishspeech_api_key", ""), api_url=cfg.get("fishspeech_api_url", ""), **retry
    ),
}


def retry_settings(cfg: ServiceConfig) -> dict[str, Any]:
    return {
        "max_attempts": int(cfg.get("tts_max_attempts", 3)),
        "attempt_timeout": float(cfg.get("tts_attempt_timeout", 30.0)),
        "backoff_seconds": float(cfg.get("tts_backoff_seconds", 1.0)),
    }


def create_provider(engine: str | EngineType, cfg: ServiceConfig) -> SpeechProvider:
    """Build the provider for ``engine``; unknown engines raise SynthesisConfigError."""
    try:
        engine_type = EngineType(engine)
    except ValueError as exc:
        raise SynthesisConfigError(f"unsupported TTS engine: {engine}") from exc
    return PROVIDER_BUILDERS[engine_type](cfg, retry_settings(cfg))


def available_engines() -> list[str]:
    return [engine.value for engine in EngineType]
