"""Speaker-notes extraction from a .pptx package.

The package is a zip of XML parts linked by relationship manifests. Slide order
comes from the relationship ids listed in ``ppt/presentation.xml``; it is never
inferred from part file names. Notes parts are walked as a stream of start/end
events so that producers using different namespace prefixes are handled alike.
"""

from __future__ import annotations

import posixpath
import zipfile
import zlib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import IO

from shared.exceptions import FatalExtractionError, PartialExtractionWarning
from shared.models import Slide
from shared.utils import setup_logging

logger = setup_logging("notes-extractor")

NO_NOTES_TEXT = "No notes for this slide."

PRESENTATION_PART = "ppt/presentation.xml"
PRESENTATION_RELS_PART = "ppt/_rels/presentation.xml.rels"
NOTES_RELATIONSHIP_SUFFIX = "/notesSlide"

BODY_PLACEHOLDER = "body"
EXCLUDED_PLACEHOLDERS = frozenset({"hdr", "ftr", "dt", "sldnum"})

# A damaged member surfaces as one of these while it is being read
ARCHIVE_READ_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, OSError)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _is_namespaced(key: str) -> bool:
    return key.startswith("{")


def resolve_part_path(base_dir: str, target: str) -> str:
    """Resolve a relationship target against the directory of its source part.

    Absolute targets ("/ppt/slides/slide1.xml") are rooted at the package root;
    relative ones may climb with "..".
    """
    if target.startswith("/"):
        joined = target.lstrip("/")
    else:
        joined = posixpath.join(base_dir, target)
    resolved = posixpath.normpath(joined)
    if resolved.startswith("../") or resolved == "..":
        raise ValueError(f"Relationship target escapes the package: {target}")
    return resolved


def rels_path_for(part_path: str) -> str:
    """Return the relationship manifest path of a part: a/b/c.xml -> a/b/_rels/c.xml.rels."""
    directory, name = posixpath.split(part_path)
    return posixpath.join(directory, "_rels", f"{name}.rels")


class NotesExtractor:
    """Read ordered speaker notes out of a presentation package."""

    def __init__(self, sentinel: str = NO_NOTES_TEXT) -> None:
        self.sentinel = sentinel

    def extract(self, pptx_path: str | Path) -> list[Slide]:
        """Return one Slide per slide listed in the presentation, in presentation order."""
        try:
            archive = zipfile.ZipFile(pptx_path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise FatalExtractionError(f"failed to open pptx: {exc}") from exc

        with archive:
            names = set(archive.namelist())
            try:
                relationships = self._parse_relationships(archive, names, PRESENTATION_RELS_PART)
            except (KeyError, ET.ParseError, *ARCHIVE_READ_ERRORS) as exc:
                raise FatalExtractionError(f"failed to parse presentation rels: {exc}") from exc
            try:
                slide_ids = self._parse_slide_order(archive, names)
            except (KeyError, ET.ParseError, *ARCHIVE_READ_ERRORS) as exc:
                raise FatalExtractionError(f"failed to parse presentation slide order: {exc}") from exc

            base_dir = posixpath.dirname(PRESENTATION_PART)
            slides: list[Slide] = []
            for rel_id in slide_ids:
                relationship = relationships.get(rel_id)
                if relationship is None:
                    logger.warning(f"Slide relationship {rel_id} has no target; skipping")
                    continue
                try:
                    slide_part = resolve_part_path(base_dir, relationship["target"])
                except ValueError as exc:
                    logger.warning(f"Skipping slide {rel_id}: {exc}")
                    continue

                index = len(slides) + 1
                try:
                    note_text = self._read_slide_notes(archive, names, slide_part)
                except PartialExtractionWarning as warning:
                    logger.warning(f"Slide {index}: {warning}")
                    note_text = ""

                slides.append(Slide(index=index, note_text=note_text or self.sentinel))

        logger.info(f"Extracted notes for {len(slides)} slides from {Path(pptx_path).name}")
        return slides

    def _read_slide_notes(self, archive: zipfile.ZipFile, names: set[str], slide_part: str) -> str:
        slide_rels = rels_path_for(slide_part)
        if slide_rels not in names:
            return ""
        try:
            relationships = self._parse_relationships(archive, names, slide_rels)
        except (KeyError, ET.ParseError, *ARCHIVE_READ_ERRORS) as exc:
            raise PartialExtractionWarning(f"unreadable relationships {slide_rels}: {exc}") from exc

        notes_target = next(
            (rel["target"] for rel in relationships.values() if rel["type"].endswith(NOTES_RELATIONSHIP_SUFFIX)),
            None,
        )
        if not notes_target:
            return ""

        try:
            notes_part = resolve_part_path(posixpath.dirname(slide_part), notes_target)
        except ValueError as exc:
            raise PartialExtractionWarning(str(exc)) from exc
        if notes_part not in names:
            raise PartialExtractionWarning(f"notes part not found: {notes_part}")

        try:
            with archive.open(notes_part) as stream:
                return extract_body_text(stream)
        except (ET.ParseError, *ARCHIVE_READ_ERRORS) as exc:
            raise PartialExtractionWarning(f"failed to extract notes from {notes_part}: {exc}") from exc

    @staticmethod
    def _parse_relationships(
        archive: zipfile.ZipFile, names: set[str], part: str
    ) -> dict[str, dict[str, str]]:
        if part not in names:
            raise KeyError(f"file not found: {part}")

        relationships: dict[str, dict[str, str]] = {}
        with archive.open(part) as stream:
            for _, element in ET.iterparse(stream, events=("end",)):
                if _local_name(element.tag) != "Relationship":
                    continue
                if element.get("TargetMode", "").lower() == "external":
                    continue
                rel_id = element.get("Id")
                target = element.get("Target")
                if rel_id and target:
                    relationships[rel_id] = {"target": target, "type": element.get("Type", "")}
        return relationships

    @staticmethod
    def _parse_slide_order(archive: zipfile.ZipFile, names: set[str]) -> list[str]:
        if PRESENTATION_PART not in names:
            raise KeyError(f"file not found: {PRESENTATION_PART}")

        slide_ids: list[str] = []
        in_list = False
        with archive.open(PRESENTATION_PART) as stream:
            for event, element in ET.iterparse(stream, events=("start", "end")):
                name = _local_name(element.tag)
                if name == "sldIdLst":
                    in_list = event == "start"
                elif in_list and event == "start" and name == "sldId":
                    # The relationship id is the namespaced "id"; the bare "id" is a numeric slide id.
                    rel_id = next(
                        (value for key, value in element.attrib.items()
                         if _is_namespaced(key) and _local_name(key) == "id"),
                        None,
                    )
                    if rel_id:
                        slide_ids.append(rel_id)
        return slide_ids


def extract_body_text(stream: IO[bytes]) -> str:
    """Collect the text of the body placeholder of a notes part.

    Header, footer, date and slide-number placeholders are skipped even when
    nested. Every paragraph closed inside the body ends with a newline.
    """
    shape_stack: list[str] = []
    parts: list[str] = []

    def inside_body() -> bool:
        if any(kind in EXCLUDED_PLACEHOLDERS for kind in shape_stack):
            return False
        return BODY_PLACEHOLDER in shape_stack

    for event, element in ET.iterparse(stream, events=("start", "end")):
        name = _local_name(element.tag)
        if event == "start":
            if name == "sp":
                shape_stack.append("")
            elif name == "ph" and shape_stack:
                shape_stack[-1] = element.get("type", "").lower()
            continue

        if name == "sp":
            if shape_stack:
                shape_stack.pop()
        elif name == "t" and inside_body():
            parts.append(element.text or "")
        elif name == "p" and inside_body():
            parts.append("\n")

    return "".join(parts).strip()


def extract_notes(pptx_path: str | Path) -> list[Slide]:
    """Convenience wrapper around :class:`NotesExtractor`."""
    return NotesExtractor().extract(pptx_path)
