"""Narration text helpers shared by every speech driver."""

import re

PAUSE_MARKER = "[停顿]"
PAUSE_REPLACEMENT = "... "
SILENT_TEXT = "..."
SENTENCE_TERMINATORS = "。！？.!?\n"

_SIGNED_NUMBER = re.compile(r"^\s*([+-]?\d+(?:\.\d+)?)\s*(%|hz|st)?\s*$", re.IGNORECASE)


def prepare_text(text: str, pause_marker: str = PAUSE_MARKER) -> str:
    """Substitute pause markers and make sure there is something to speak."""
    if not text.strip():
        return SILENT_TEXT
    return text.replace(pause_marker, PAUSE_REPLACEMENT)


def split_sentences(text: str) -> list[str]:
    """Split narration after each sentence terminator, Latin or CJK, and after newlines.

    Sentences keep their terminal punctuation. If nothing survives trimming the
    whole text is returned as a single segment.
    """
    sentences: list[str] = []
    current: list[str] = []
    for char in text:
        current.append(char)
        if char in SENTENCE_TERMINATORS:
            sentence = "".join(current).strip()
            if sentence:
                sentences.append(sentence)
            current = []

    tail = "".join(current).strip()
    if tail:
        sentences.append(tail)

    return sentences or [text]


def parse_signed_number(value: str | None) -> float:
    """Parse "+20%", "-5Hz" or "+2st" into a signed number; anything else is neutral (0)."""
    if not value:
        return 0.0
    match = _SIGNED_NUMBER.match(value)
    if not match:
        return 0.0
    return float(match.group(1))


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def percent_to_factor(value: str | None, minimum: float, maximum: float) -> float:
    """Map a relative percentage onto a multiplier centered at 1.0."""
    return clamp(1.0 + parse_signed_number(value) / 100.0, minimum, maximum)


def percent_to_scale(value: str | None, neutral: int = 50, minimum: int = 0, maximum: int = 100) -> int:
    """Map a relative percentage onto an integer scale centered at ``neutral``."""
    return int(round(clamp(neutral + parse_signed_number(value) / 2.0, minimum, maximum)))
