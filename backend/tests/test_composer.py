"""Tests for the media composer; ffmpeg and ffprobe are replaced by a fake runner."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from services.video.composer import CONCAT_LIST_NAME, MediaComposer, RenderOptions
from shared.exceptions import CompositionError, SubtitleError


class FakeRunner:
    """Stands in for MediaComposer._run and records every command."""

    def __init__(self, durations: dict[str, str] | None = None, fail_clip: int | None = None):
        self.durations = durations or {}
        self.fail_clip = fail_clip
        self.commands: list[list[str]] = []
        self.concat_list: str | None = None

    async def __call__(self, args, description):
        args = list(args)
        self.commands.append(args)
        if args[0] == "ffprobe":
            audio = Path(args[-1]).name
            if audio not in self.durations:
                raise CompositionError(f"probe {audio} failed")
            return self.durations[audio]
        if "concat" in args:
            self.concat_list = Path(args[args.index("-i") + 1]).read_text(encoding="utf-8")
        else:
            output = Path(args[-1])
            if self.fail_clip is not None and output.name == f"part_{self.fail_clip}.mp4":
                # A crashing encoder still leaves a truncated file
                output.write_bytes(b"partial")
                raise CompositionError("encoder crashed")
        Path(args[-1]).write_bytes(b"video")
        return ""

    def clip_commands(self) -> list[list[str]]:
        return [cmd for cmd in self.commands if cmd[0] == "ffmpeg" and "concat" not in cmd]


@pytest.fixture
def segments(tmp_path: Path):
    images, audios = [], []
    for i in range(2):
        image = tmp_path / f"slide-{i + 1}.jpg"
        image.write_bytes(b"jpeg")
        audio = tmp_path / f"audio_{i}.mp3"
        audio.write_bytes(b"mp3")
        images.append(image)
        audios.append(audio)
    return images, audios


def make_composer(runner: FakeRunner, renderer=None) -> MediaComposer:
    composer = MediaComposer(subtitle_renderer=renderer or MagicMock())
    composer._run = runner
    return composer


@pytest.mark.asyncio
async def test_compose_builds_clips_with_probed_durations(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "2.5\n", "audio_1.mp3": "1.25"})
    output = tmp_path / "output_1.mp4"

    result = await make_composer(runner).compose_video(images, audios, ["One.", "Two."], output)

    assert result == output
    assert output.exists()
    clips = runner.clip_commands()
    assert [cmd[cmd.index("-t") + 1] for cmd in clips] == ["2.500", "1.250"]
    assert [cmd[cmd.index("-i") + 1] for cmd in clips] == [str(images[0]), str(images[1])]
    assert "stillimage" in clips[0] and "yuv420p" in clips[0]
    assert runner.concat_list == "file 'part_0.mp4'\nfile 'part_1.mp4'\n"


@pytest.mark.asyncio
async def test_intermediates_are_removed(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "1", "audio_1.mp3": "1"})

    await make_composer(runner).compose_video(images, audios, ["", ""], tmp_path / "out.mp4")

    assert not list(tmp_path.glob("part_*.mp4"))
    assert not (tmp_path / CONCAT_LIST_NAME).exists()


@pytest.mark.asyncio
async def test_probe_failure_falls_back_to_default_duration(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "3"})

    await make_composer(runner).compose_video(images, audios, ["a", "b"], tmp_path / "out.mp4")

    assert [cmd[cmd.index("-t") + 1] for cmd in runner.clip_commands()] == ["3.000", "5.000"]


@pytest.mark.asyncio
async def test_clip_failure_aborts_and_cleans_up(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "1", "audio_1.mp3": "1"}, fail_clip=1)

    with pytest.raises(CompositionError) as exc_info:
        await make_composer(runner).compose_video(images, audios, ["a", "b"], tmp_path / "out.mp4")

    assert "failed to create part 1" in str(exc_info.value)
    assert not (tmp_path / "part_0.mp4").exists()
    assert not (tmp_path / "part_1.mp4").exists()
    assert not (tmp_path / "out.mp4").exists()


@pytest.mark.asyncio
async def test_mismatched_inputs_are_rejected(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner()

    with pytest.raises(CompositionError):
        await make_composer(runner).compose_video(images, audios[:1], ["a"], tmp_path / "out.mp4")

    assert runner.commands == []


@pytest.mark.asyncio
async def test_empty_input_is_rejected(tmp_path) -> None:
    with pytest.raises(CompositionError):
        await make_composer(FakeRunner()).compose_video([], [], [], tmp_path / "out.mp4")


@pytest.mark.asyncio
async def test_subtitles_are_burned_when_enabled(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "1", "audio_1.mp3": "1"})
    renderer = MagicMock()
    renderer.draw.side_effect = lambda src, dst, text, size: Path(dst).write_bytes(b"burned")

    await make_composer(runner, renderer).compose_video(
        images, audios, ["Hello.", ""], tmp_path / "out.mp4",
        RenderOptions(enable_subtitles=True, font_size=36),
    )

    renderer.draw.assert_called_once_with(images[0], tmp_path / "burned_0.jpg", "Hello.", 36)
    clips = runner.clip_commands()
    assert clips[0][clips[0].index("-i") + 1] == str(tmp_path / "burned_0.jpg")
    assert clips[1][clips[1].index("-i") + 1] == str(images[1])
    assert not (tmp_path / "burned_0.jpg").exists()


@pytest.mark.asyncio
async def test_subtitle_failure_uses_original_image(tmp_path, segments) -> None:
    images, audios = segments
    runner = FakeRunner({"audio_0.mp3": "1", "audio_1.mp3": "1"})
    renderer = MagicMock()
    renderer.draw.side_effect = SubtitleError("no font")

    await make_composer(runner, renderer).compose_video(
        images, audios, ["a", "b"], tmp_path / "out.mp4", RenderOptions(enable_subtitles=True)
    )

    assert [cmd[cmd.index("-i") + 1] for cmd in runner.clip_commands()] == [str(images[0]), str(images[1])]


@pytest.mark.asyncio
async def test_probe_duration_parses_output(tmp_path) -> None:
    composer = MediaComposer(subtitle_renderer=MagicMock())

    async def fake_run(args, description):
        return "12.345678\n"

    composer._run = fake_run

    assert await composer.probe_duration(tmp_path / "a.mp3") == pytest.approx(12.345678)


@pytest.mark.asyncio
async def test_probe_duration_rejects_garbage(tmp_path) -> None:
    composer = MediaComposer(subtitle_renderer=MagicMock())

    async def fake_run(args, description):
        return "N/A"

    composer._run = fake_run

    with pytest.raises(CompositionError):
        await composer.probe_duration(tmp_path / "a.mp3")


@pytest.mark.asyncio
async def test_run_reports_missing_binary() -> None:
    composer = MediaComposer(ffprobe_binary="deckcast-missing-ffprobe", subtitle_renderer=MagicMock())

    with pytest.raises(CompositionError):
        await composer.probe_duration("a.mp3")
