"""Application-level Text-to-Speech service wrapper."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from services.tts_service.drivers.base import SpeechProvider
from services.tts_service.factory import create_provider
from services.tts_service.text import prepare_text
from shared.config import ServiceConfig
from shared.models import SynthesisOptions

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str, ServiceConfig], SpeechProvider]


class SpeechService:
    """Resolve a provider for an engine and synthesize prepared narration text."""

    def __init__(self, cfg: ServiceConfig, provider_factory: ProviderFactory = create_provider) -> None:
        self.config = cfg
        self.provider_factory = provider_factory

    def provider_for(self, engine_type: str) -> SpeechProvider:
        return self.provider_factory(engine_type, self.config)

    async def synthesize(
        self,
        provider: SpeechProvider,
        text: str,
        output_path: str | Path,
        voice_name: str = "",
        options: SynthesisOptions | None = None,
    ) -> Path:
        """Apply pause-marker substitution, then synthesize with the provider's retry policy."""
        spoken = prepare_text(text, self.config.get_pipeline_value("narration.pause_marker", "[停顿]"))
        logger.debug(f"Synthesizing {len(spoken)} chars with {provider.name} into {output_path}")
        await provider.synthesize(spoken, output_path, voice_name, options)
        return Path(output_path)
