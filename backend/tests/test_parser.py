"""Tests for presentation parsing: rasterizer adapter and slide pairing."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import notes_xml
from services.presentation.converter import MACOS_SOFFICE, SlideRasterizer, find_soffice, page_number
from services.presentation.parser import PresentationParser, image_url, pair_slides
from shared.exceptions import FatalExtractionError
from shared.models import Slide


def test_page_number_sorts_numerically() -> None:
    names = ["slide-10.jpg", "slide-2.jpg", "slide-1.jpg"]

    assert sorted(names, key=page_number) == ["slide-1.jpg", "slide-2.jpg", "slide-10.jpg"]
    assert page_number("slide-07.jpg") == 7


def test_find_soffice_prefers_configured_binary() -> None:
    assert find_soffice("/opt/lo/soffice") == "/opt/lo/soffice"


def test_find_soffice_falls_back_to_macos_bundle() -> None:
    with patch("services.presentation.converter.shutil.which", return_value=None), patch(
        "services.presentation.converter.Path.exists", return_value=True
    ):
        assert find_soffice() == MACOS_SOFFICE


def test_find_soffice_missing_is_fatal() -> None:
    with patch("services.presentation.converter.shutil.which", return_value=None), patch(
        "services.presentation.converter.Path.exists", return_value=False
    ):
        with pytest.raises(FatalExtractionError):
            find_soffice()


@pytest.mark.asyncio
async def test_rasterizer_runs_soffice_then_pdftoppm(tmp_path: Path) -> None:
    document = tmp_path / "deck.pptx"
    document.write_bytes(b"pptx")
    out_dir = tmp_path / "images"
    commands: list[list[str]] = []

    async def fake_run(command, description):
        commands.append(command)
        if "--convert-to" in command:
            (out_dir / "deck.pdf").write_bytes(b"pdf")
        else:
            for number in (1, 2, 10):
                (out_dir / f"slide-{number:02d}.jpg").write_bytes(b"jpg")

    rasterizer = SlideRasterizer(soffice_binary="soffice", resolution=150)
    with patch.object(SlideRasterizer, "_run", side_effect=fake_run):
        images = await rasterizer.convert(document, out_dir)

    assert [image.name for image in images] == ["slide-01.jpg", "slide-02.jpg", "slide-10.jpg"]
    assert commands[0][:4] == ["soffice", "--headless", "--convert-to", "pdf"]
    assert commands[1][:4] == ["pdftoppm", "-jpeg", "-r", "150"]
    assert commands[1][-1] == str(out_dir / "slide")


@pytest.mark.asyncio
async def test_rasterizer_without_images_is_fatal(tmp_path: Path) -> None:
    document = tmp_path / "deck.pptx"
    document.write_bytes(b"pptx")
    out_dir = tmp_path / "images"

    async def fake_run(command, description):
        if "--convert-to" in command:
            (out_dir / "deck.pdf").write_bytes(b"pdf")

    with patch.object(SlideRasterizer, "_run", side_effect=fake_run):
        with pytest.raises(FatalExtractionError):
            await SlideRasterizer(soffice_binary="soffice").convert(document, out_dir)


@pytest.mark.asyncio
async def test_rasterizer_missing_pdf_is_fatal(tmp_path: Path) -> None:
    with patch.object(SlideRasterizer, "_run", new=AsyncMock()):
        with pytest.raises(FatalExtractionError):
            await SlideRasterizer(soffice_binary="soffice").convert(tmp_path / "deck.pptx", tmp_path / "images")


def test_pair_slides_uses_shorter_list() -> None:
    slides = [Slide(index=i, note_text=f"note {i}") for i in (1, 2, 3)]
    images = [Path("/work/images/slide-1.jpg"), Path("/work/images/slide-2.jpg")]

    paired = pair_slides("job-1", slides, images)

    assert [(item.index, item.image_url, item.text) for item in paired] == [
        (0, "/uploads/job-1/images/slide-1.jpg", "note 1"),
        (1, "/uploads/job-1/images/slide-2.jpg", "note 2"),
    ]


def test_image_url() -> None:
    assert image_url("abc", "/tmp/x/images/slide-3.jpg") == "/uploads/abc/images/slide-3.jpg"


@pytest.mark.asyncio
async def test_parse_joins_notes_and_images(build_pptx, tmp_path: Path) -> None:
    document = build_pptx({"rId2": notes_xml(["First."]), "rId3": None})
    rasterizer = MagicMock()
    rasterizer.convert = AsyncMock(
        return_value=[tmp_path / "images" / "slide-1.jpg", tmp_path / "images" / "slide-2.jpg"]
    )

    slides = await PresentationParser(rasterizer=rasterizer).parse("job-9", document, tmp_path)

    rasterizer.convert.assert_awaited_once_with(document, tmp_path / "images")
    assert [slide.text for slide in slides] == ["First.", "No notes for this slide."]
    assert slides[1].image_url == "/uploads/job-9/images/slide-2.jpg"


@pytest.mark.asyncio
async def test_parse_reports_rasterizer_failure(build_pptx, tmp_path: Path) -> None:
    document = build_pptx({"rId2": notes_xml(["First."])})
    rasterizer = MagicMock()
    rasterizer.convert = AsyncMock(side_effect=FatalExtractionError("pdftoppm conversion failed"))

    with pytest.raises(FatalExtractionError) as exc_info:
        await PresentationParser(rasterizer=rasterizer).parse("job-9", document, tmp_path)

    assert "image conversion failed" in str(exc_info.value)


@pytest.mark.asyncio
async def test_parse_reports_notes_error_first(tmp_path: Path) -> None:
    document = tmp_path / "broken.pptx"
    document.write_bytes(b"not a zip")
    rasterizer = MagicMock()
    rasterizer.convert = AsyncMock(side_effect=FatalExtractionError("soffice failed"))

    with pytest.raises(FatalExtractionError) as exc_info:
        await PresentationParser(rasterizer=rasterizer).parse("job-9", document, tmp_path)

    assert "ppt parsing failed" in str(exc_info.value)
    rasterizer.convert.assert_awaited_once()
