import os
import sys
import tempfile
import zipfile
from pathlib import Path
from typing import Callable

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
PROJECT_ROOT = ROOT_DIR.parent
for path in (PROJECT_ROOT, ROOT_DIR):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

# The module-level config is created on first import; keep its upload root out of the checkout
os.environ.setdefault("UPLOAD_ROOT", tempfile.mkdtemp(prefix="deckcast-uploads-"))
os.environ.setdefault("PIPELINE_CONFIG_PATH", str(PROJECT_ROOT / "config" / "pipeline.yaml"))

from shared.config import ServiceConfig  # noqa: E402

NS_P = "http://schemas.openxmlformats.org/presentationml/2006/main"
NS_A = "http://schemas.openxmlformats.org/drawingml/2006/main"
NS_R = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS_PKG_RELS = "http://schemas.openxmlformats.org/package/2006/relationships"
REL_SLIDE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide"
REL_NOTES = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/notesSlide"
REL_LAYOUT = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/slideLayout"


def relationships_xml(entries: list[tuple[str, str, str]]) -> str:
    rels = "".join(
        f'<Relationship Id="{rel_id}" Type="{rel_type}" Target="{target}"/>'
        for rel_id, rel_type, target in entries
    )
    return f'<?xml version="1.0" encoding="UTF-8"?><Relationships xmlns="{NS_PKG_RELS}">{rels}</Relationships>'


def presentation_xml(rel_ids: list[str]) -> str:
    items = "".join(
        f'<p:sldId id="{256 + i}" r:id="{rel_id}"/>' for i, rel_id in enumerate(rel_ids)
    )
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<p:presentation xmlns:p="{NS_P}" xmlns:r="{NS_R}"><p:sldIdLst>{items}</p:sldIdLst></p:presentation>'
    )


def notes_xml(paragraphs: list[str], extra_shapes: str = "") -> str:
    body = "".join(f"<a:p><a:r><a:t>{text}</a:t></a:r></a:p>" for text in paragraphs)
    return (
        f'<?xml version="1.0" encoding="UTF-8"?>'
        f'<p:notes xmlns:p="{NS_P}" xmlns:a="{NS_A}"><p:cSld><p:spTree>'
        f'<p:sp><p:nvSpPr><p:nvPr><p:ph type="sldImg"/></p:nvPr></p:nvSpPr></p:sp>'
        f'<p:sp><p:nvSpPr><p:nvPr><p:ph type="body" idx="1"/></p:nvPr></p:nvSpPr>'
        f"<p:txBody>{body}</p:txBody></p:sp>"
        f"{extra_shapes}"
        f"</p:spTree></p:cSld></p:notes>"
    )


@pytest.fixture
def build_pptx(tmp_path: Path) -> Callable[..., Path]:
    """Build a minimal presentation package.

    ``slides`` maps a relationship id to the notes XML of that slide (None for a
    slide without notes). ``order`` lists the ids as they appear in sldIdLst.
    ``overrides`` replaces or adds raw package parts; a None value drops the part.
    """

    def _build(
        slides: dict[str, str | None],
        order: list[str] | None = None,
        overrides: dict[str, str | None] | None = None,
        name: str = "deck.pptx",
    ) -> Path:
        order = order or list(slides)
        parts: dict[str, str | None] = {
            "ppt/presentation.xml": presentation_xml(order),
        }
        presentation_rels: list[tuple[str, str, str]] = []
        for number, (rel_id, notes) in enumerate(slides.items(), start=1):
            presentation_rels.append((rel_id, REL_SLIDE, f"slides/slide{number}.xml"))
            parts[f"ppt/slides/slide{number}.xml"] = f'<p:sld xmlns:p="{NS_P}"/>'
            slide_rels = [("rId1", REL_LAYOUT, "../slideLayouts/slideLayout1.xml")]
            if notes is not None:
                slide_rels.append(("rId2", REL_NOTES, f"../notesSlides/notesSlide{number}.xml"))
                parts[f"ppt/notesSlides/notesSlide{number}.xml"] = notes
            parts[f"ppt/slides/_rels/slide{number}.xml.rels"] = relationships_xml(slide_rels)
        parts["ppt/_rels/presentation.xml.rels"] = relationships_xml(presentation_rels)
        parts.update(overrides or {})

        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as archive:
            for part_name, content in parts.items():
                if content is not None:
                    archive.writestr(part_name, content)
        return path

    return _build


@pytest.fixture
def service_config(tmp_path: Path) -> ServiceConfig:
    """A fresh config rooted in tmp_path with fast retry settings."""
    cfg = ServiceConfig()
    upload_root = tmp_path / "uploads"
    upload_root.mkdir()
    cfg.set("upload_root", str(upload_root))
    cfg.set("tts_max_attempts", 3)
    cfg.set("tts_attempt_timeout", 5.0)
    cfg.set("tts_backoff_seconds", 0)
    cfg.set_pipeline_config({})
    return cfg
