from pathlib import Path
from typing import ClassVar

from shared.exceptions import SynthesisTransientError
from shared.models import SynthesisOptions

from .base import SpeechProvider, run_command


class EdgeSpeechProvider(SpeechProvider):
    """Microsoft Edge online voices through the ``edge-tts`` command line tool."""

    name: ClassVar[str] = "edge"
    default_voice: ClassVar[str] = "zh-CN-XiaoxiaoNeural"

    def __init__(self, command: str = "edge-tts", **kwargs) -> None:
        super().__init__(**kwargs)
        # "python3 -m edge_tts" style commands are split into argv
        self.command = command.split()

    def build_command(self, text: str, output_path: Path, voice: str, options: SynthesisOptions) -> list[str]:
        args = [
            *self.command,
            "--text", text,
            "--write-media", str(output_path),
            "--voice", voice,
        ]
        # edge-tts takes the same "+20%" / "-5Hz" strings the options carry;
        # the "=" form keeps negative values from being read as flags.
        if options.rate:
            args.append(f"--rate={options.rate}")
        if options.volume:
            args.append(f"--volume={options.volume}")
        if options.pitch:
            args.append(f"--pitch={options.pitch}")
        return args

    async def _synthesize_once(
        self, text: str, output_path: Path, voice: str, options: SynthesisOptions
    ) -> None:
        code, output = await run_command(*self.build_command(text, output_path, voice, options))
        if code != 0:
            raise SynthesisTransientError(f"edge-tts cli failed with exit code {code}, output: {output[-500:]}")
