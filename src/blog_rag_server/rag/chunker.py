"""
Text Chunking

Chinese-friendly chunker:
- Split by markdown headings first (``#`` .. ``######``); heading lines stay
  at the top of their section.
- Sections longer than ``max_len`` are re-packed from sentence-like segments
  (Chinese and Latin terminators) so no chunk is cut mid-sentence.

A single segment longer than ``max_len`` is emitted whole.

Heading markers are kept, not stripped, so the chunks together hold every
non-whitespace character of the input. In the ingestion pipeline the text
has already been rendered to plain text, so it carries no ``#`` markers.
"""

from __future__ import annotations

import re
from typing import List

DEFAULT_MAX_LEN = 800

_HEADING = re.compile(r"^(?=#{1,6}\s)", re.MULTILINE)

_TERMINATORS = "。！？!?；;"
_SEGMENT = re.compile(
    rf"[^{_TERMINATORS}]*[{_TERMINATORS}]+\s*|[^{_TERMINATORS}]+"
)


def split_sections(text: str) -> List[str]:
    sections = [s.strip() for s in _HEADING.split(text)]
    return [s for s in sections if s]


def split_segments(section: str) -> List[str]:
    """Split a section after each run of sentence terminators."""
    return _SEGMENT.findall(section)


def chunk_text(text: str, max_len: int = DEFAULT_MAX_LEN) -> List[str]:
    """
    Split plain text into ordered chunks of at most ``max_len`` characters.

    Parameters
    ----------
    text : str
        Input text (plain text or markdown).

    max_len : int
        Maximum chunk length in characters.

    Returns
    -------
    List[str]
        Non-empty, trimmed chunks in document order.
    """
    if max_len <= 0:
        raise ValueError("max_len must be positive")

    chunks: List[str] = []

    def push(piece: str) -> None:
        piece = piece.strip()
        if piece:
            chunks.append(piece)

    for section in split_sections(text):
        if len(section) <= max_len:
            push(section)
            continue

        buf = ""
        for segment in split_segments(section):
            if len(buf + segment) > max_len:
                push(buf)
                buf = segment
            else:
                buf += segment
        push(buf)

    return chunks
