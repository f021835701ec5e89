"""Turn per-segment images and narration audio into one video.

Every segment becomes a clip that loops its still image for exactly the probed
audio duration. All clips go through the same encoder settings, which lets the
concat demuxer join them with a stream copy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from services.video.subtitles import SubtitleRenderer
from shared.exceptions import CompositionError, SubtitleError
from shared.utils import remove_quietly, setup_logging

logger = setup_logging("media-composer")

DEFAULT_DURATION = 5.0
CONCAT_LIST_NAME = "concat_list.txt"
EVEN_PAD_FILTER = "pad=ceil(iw/2)*2:ceil(ih/2)*2"


@dataclass
class RenderOptions:
    enable_subtitles: bool = False
    font_size: int = 48


class MediaComposer:
    """Drive ffprobe/ffmpeg to build clips and concatenate them."""

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        subtitle_renderer: SubtitleRenderer | None = None,
        default_duration: float = DEFAULT_DURATION,
    ) -> None:
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.subtitle_renderer = subtitle_renderer or SubtitleRenderer()
        self.default_duration = default_duration

    async def _run(self, args: Sequence[str], description: str) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CompositionError(f"{description}: cannot start {args[0]}: {exc}") from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise CompositionError(
                f"{description} failed with exit code {process.returncode}: "
                f"{stderr.decode('utf-8', errors='replace')[-2000:]}"
            )
        return stdout.decode("utf-8", errors="replace")

    async def probe_duration(self, audio_path: str | Path) -> float:
        """Exact duration in seconds as reported by ffprobe."""
        output = await self._run(
            [
                self.ffprobe_binary,
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                str(audio_path),
            ],
            f"probe {audio_path}",
        )
        try:
            return float(output.strip())
        except ValueError as exc:
            raise CompositionError(f"unparsable duration for {audio_path}: {output.strip()!r}") from exc

    async def render_clip(self, image_path: str | Path, audio_path: str | Path, duration: float, output_path: str | Path) -> Path:
        await self._run(
            [
                self.ffmpeg_binary, "-y",
                "-loop", "1", "-t", f"{duration:.3f}", "-i", str(image_path),
                "-i", str(audio_path),
                "-c:v", "libx264", "-tune", "stillimage",
                "-c:a", "aac", "-b:a", "192k",
                "-pix_fmt", "yuv420p",
                "-vf", EVEN_PAD_FILTER,
                str(output_path),
            ],
            f"render clip {Path(output_path).name}",
        )
        return Path(output_path)

    async def concat_clips(self, clips: Sequence[Path], output_path: str | Path, list_path: Path) -> Path:
        """Join clips in order with the concat demuxer (no re-encode)."""
        # Entries are relative to the list file, which sits next to the clips
        list_path.write_text("".join(f"file '{clip.name}'\n" for clip in clips), encoding="utf-8")
        await self._run(
            [
                self.ffmpeg_binary, "-y",
                "-f", "concat", "-safe", "0",
                "-i", str(list_path),
                "-c", "copy",
                str(output_path),
            ],
            "concatenate clips",
        )
        return Path(output_path)

    async def compose_video(
        self,
        images: Sequence[str | Path],
        audios: Sequence[str | Path],
        texts: Sequence[str],
        output_path: str | Path,
        options: RenderOptions | None = None,
    ) -> Path:
        """Build one clip per segment and concatenate them into ``output_path``.

        Intermediate clips, burned images and the concat list are removed
        afterwards whether or not concatenation succeeded.
        """
        options = options or RenderOptions()
        if len(images) != len(audios):
            raise CompositionError(
                f"number of images ({len(images)}) and audios ({len(audios)}) do not match"
            )
        if not images:
            raise CompositionError("nothing to compose")

        output_path = Path(output_path)
        temp_dir = output_path.parent
        list_path = temp_dir / CONCAT_LIST_NAME
        clips: list[Path] = []
        burned: list[Path] = []

        try:
            for i, (image, audio) in enumerate(zip(images, audios)):
                text = texts[i] if i < len(texts) else ""
                current_image = Path(image)

                if options.enable_subtitles and text:
                    burned_path = temp_dir / f"burned_{i}.jpg"
                    try:
                        await asyncio.to_thread(
                            self.subtitle_renderer.draw, image, burned_path, text, options.font_size
                        )
                    except SubtitleError as exc:
                        logger.warning(f"Failed to draw subtitle for segment {i}: {exc}")
                    else:
                        current_image = burned_path
                        burned.append(burned_path)

                try:
                    duration = await self.probe_duration(audio)
                except CompositionError as exc:
                    logger.warning(f"Failed to get duration for {audio}: {exc}; using {self.default_duration}s")
                    duration = self.default_duration

                clip_path = temp_dir / f"part_{i}.mp4"
                # ffmpeg may leave a partial clip behind when it fails
                clips.append(clip_path)
                try:
                    await self.render_clip(current_image, audio, duration, clip_path)
                except CompositionError as exc:
                    raise CompositionError(f"failed to create part {i}: {exc}") from exc

            await self.concat_clips(clips, output_path, list_path)
        finally:
            for path in [*clips, *burned, list_path]:
                remove_quietly(path, logger)

        logger.info(f"Composed {len(clips)} clips into {output_path}")
        return output_path
