import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

from shared.exceptions import SynthesisConfigError, SynthesisError, SynthesisTransientError
from shared.models import SynthesisOptions
from shared.utils import remove_quietly, setup_logging

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_ATTEMPT_TIMEOUT = 30.0
DEFAULT_BACKOFF_SECONDS = 1.0


async def run_command(*args: str) -> tuple[int, str]:
    """Run a CLI and return (exit code, combined output). The process is killed if the caller is cancelled."""
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as exc:
        raise SynthesisConfigError(f"command not found: {args[0]}") from exc

    try:
        output, _ = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise
    return process.returncode or 0, output.decode("utf-8", errors="replace")


class SpeechProvider(ABC):
    """Abstract base class for speech synthesis backends.

    Subclasses implement a single attempt in :meth:`_synthesize_once`; the retry
    policy, the per-attempt timeout and output verification live here so every
    backend behaves the same way.
    """

    name: ClassVar[str] = "base"
    default_voice: ClassVar[str] = ""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        attempt_timeout: float = DEFAULT_ATTEMPT_TIMEOUT,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.attempt_timeout = attempt_timeout
        self.backoff_seconds = backoff_seconds
        self.logger: logging.Logger = setup_logging(f"tts-{self.name}")

    def check_credentials(self) -> None:
        """Raise SynthesisConfigError when a required secret is missing."""

    @abstractmethod
    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        """Perform one synthesis attempt writing audio to ``output_path``."""

    async def synthesize(
        self,
        text: str,
        output_path: str | Path,
        voice_name: str = "",
        options: SynthesisOptions | None = None,
    ) -> None:
        """Synthesize ``text`` into ``output_path``, retrying transient failures.

        On success the file exists and is non-empty. On failure no partial file
        is left behind.
        """
        self.check_credentials()

        output_path = Path(output_path)
        voice = voice_name or self.default_voice
        options = options or SynthesisOptions()
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self.backoff_seconds * (attempt - 1))
            try:
                await asyncio.wait_for(
                    self._synthesize_once(text, output_path, voice, options),
                    timeout=self.attempt_timeout,
                )
                self._verify_output(output_path)
                if attempt > 1:
                    self.logger.info(f"Synthesis succeeded on attempt {attempt}/{self.max_attempts}")
                return
            except SynthesisConfigError:
                remove_quietly(output_path, self.logger)
                raise
            except asyncio.TimeoutError:
                last_error = SynthesisTransientError(
                    f"{self.name} synthesis timed out after {self.attempt_timeout:g}s"
                )
            except Exception as exc:
                last_error = exc

            remove_quietly(output_path, self.logger)
            self.logger.warning(f"Attempt {attempt}/{self.max_attempts} failed: {last_error}")

        raise SynthesisTransientError(
            f"synthesis failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error

    @staticmethod
    def _verify_output(output_path: Path) -> None:
        if not output_path.exists():
            raise SynthesisError(f"no audio written to {output_path}")
        if output_path.stat().st_size == 0:
            raise SynthesisError(f"empty audio file {output_path}")
