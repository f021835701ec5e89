"""
Configuration for the DeckCast backend.

Flat settings (credentials, tool paths, retry policy) come from the environment,
optionally seeded by ``backend/.env``. Tuning knobs for the pipeline live in a
YAML file and may be overridden one by one with ``PIPELINE_FLAG_<PATH>``.
"""

import json
import os
from collections.abc import Callable
from typing import Any

import yaml

from dotenv import load_dotenv

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
DEFAULT_PIPELINE_CONFIG = os.path.join(BACKEND_DIR, "..", "config", "pipeline.yaml")

# key, environment variable, default, parser
ENV_SETTINGS: list[tuple[str, str, str, Callable[[str], Any]]] = [
    ("upload_root", "UPLOAD_ROOT", "uploads", str),
    ("log_level", "LOG_LEVEL", "INFO", str),
    ("allowed_origins", "ALLOWED_ORIGINS", '["*"]', json.loads),
    ("xunfei_app_id", "XUNFEI_APPID", "", str),
    ("xunfei_api_key", "XUNFEI_API_KEY", "", str),
    ("xunfei_api_secret", "XUNFEI_API_SECRET", "", str),
    ("openai_api_key", "OPENAI_API_KEY", "", str),
    ("openai_base_url", "OPENAI_BASE_URL", "", str),
    ("google_api_key", "GOOGLE_API_KEY", "", str),
    ("fishspeech_api_key", "FISHSPEECH_API_KEY", "", str),
    ("fishspeech_api_url", "FISHSPEECH_API_URL", "", str),
    ("edge_tts_command", "EDGE_TTS_COMMAND", "edge-tts", str),
    ("subtitle_font", "SUBTITLE_FONT", "", str),
    ("ffmpeg_binary", "FFMPEG_BINARY", "ffmpeg", str),
    ("ffprobe_binary", "FFPROBE_BINARY", "ffprobe", str),
    ("soffice_binary", "SOFFICE_BINARY", "", str),
    ("pdftoppm_binary", "PDFTOPPM_BINARY", "pdftoppm", str),
    ("tts_max_attempts", "TTS_MAX_ATTEMPTS", "3", int),
    ("tts_attempt_timeout", "TTS_ATTEMPT_TIMEOUT", "30", float),
    ("tts_backoff_seconds", "TTS_BACKOFF_SECONDS", "1", float),
]


class ServiceConfig:
    """Environment settings plus the YAML pipeline configuration."""

    def __init__(self, env_file: str | None = None) -> None:
        # Variables already present in the process environment win over .env
        load_dotenv(dotenv_path=env_file or os.path.join(BACKEND_DIR, ".env"), override=False)
        self.config: dict[str, Any] = {}
        self.pipeline_config: dict[str, Any] = {}
        self.pipeline_config_path = os.getenv("PIPELINE_CONFIG_PATH", DEFAULT_PIPELINE_CONFIG)
        self.reload()

    def load_from_env(self) -> None:
        self.config = {
            key: parse(os.getenv(env_name, default))
            for key, env_name, default, parse in ENV_SETTINGS
        }

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Override a single setting in memory; nothing is persisted."""
        self.config[key] = value

    def reload(self) -> None:
        self.load_from_env()
        self.load_pipeline_config()

    def load_pipeline_config(self) -> None:
        """Read the pipeline YAML; a missing file means every knob keeps its default."""
        if not os.path.isfile(self.pipeline_config_path):
            self.pipeline_config = {}
            return
        with open(self.pipeline_config_path, encoding="utf-8") as stream:
            self.pipeline_config = yaml.safe_load(stream) or {}

    def get_pipeline_value(self, path: str, default: Any = None) -> Any:
        """Look up a dotted path such as ``video.default_duration``.

        ``PIPELINE_FLAG_VIDEO_DEFAULT_DURATION`` in the environment takes
        precedence and is converted to the type of ``default``.
        """
        override = os.getenv("PIPELINE_FLAG_" + path.replace(".", "_").upper())
        if override is not None:
            return self._coerce_env_value(override, default)

        node: Any = self.pipeline_config
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set_pipeline_config(self, pipeline_config: dict[str, Any]) -> None:
        self.pipeline_config = pipeline_config

    @staticmethod
    def _coerce_env_value(raw: str, default: Any) -> Any:
        if isinstance(default, bool):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if isinstance(default, (int, float)):
            try:
                return type(default)(raw)
            except ValueError:
                return default
        return raw or default


# Global configuration instance, used by the HTTP entry point only
config = ServiceConfig()
