"""
Corpus Selection

Reduces the full set of candidate content files to exactly one source file
per logical document.

Policies
--------
- Static single-instance pages (about / contact / community): only the
  Chinese file is kept. English variants are dropped even when no Chinese
  counterpart exists.
- Blog posts: grouped by logical document key. The Chinese file wins when
  present; the English file is selected only when no Chinese file exists.

The reduction is order-independent. Paths matching neither category are
ignored.

Layout assumption (Hugo multilingual content tree): the language is the
first directory and the section the second, e.g. ``zh/about/_index.md`` or
``en/blog/<slug>/index.md``. A section name deeper in the path, such as a
blog post slugged ``about``, does not make a static page.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from pydantic import BaseModel, Field

from .paths import BLOG_SEGMENT, EN_MARKER, ZH_MARKER, logical_document_key

logger = logging.getLogger("blograg.selector")


STATIC_SECTIONS = ("about", "contact", "community")


class SelectionReport(BaseModel):
    """Outcome of one corpus selection pass."""

    selected: List[str] = Field(default_factory=list)
    blog_posts: int = 0
    static_pages: int = 0
    dropped: List[str] = Field(default_factory=list)


def _normalize(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def _section_segments(rel_path: str) -> List[str]:
    # Leading language segment plus the section directly below it
    return rel_path.split("/")[:-1][:2]


def is_static_page(rel_path: str) -> bool:
    return any(seg in STATIC_SECTIONS for seg in _section_segments(rel_path))


def is_blog_post(rel_path: str) -> bool:
    return BLOG_SEGMENT in _section_segments(rel_path)


def select_corpus(candidate_paths: Iterable[str]) -> SelectionReport:
    """
    Pick the canonical source file for every logical document.

    Parameters
    ----------
    candidate_paths : Iterable[str]
        Root-relative content paths, e.g. ``zh/blog/foo/index.md``.

    Returns
    -------
    SelectionReport
        Selected paths (blog posts sorted by key, then static pages) and
        the paths that were dropped.
    """
    blog_winners: Dict[str, str] = {}
    static_pages: List[str] = []
    dropped: List[str] = []

    for raw in sorted(set(candidate_paths)):
        rel = _normalize(raw)

        if is_static_page(rel):
            if rel.startswith(ZH_MARKER + "/"):
                static_pages.append(rel)
            else:
                dropped.append(rel)
            continue

        if not is_blog_post(rel):
            dropped.append(rel)
            continue

        key = logical_document_key(rel)
        current = blog_winners.get(key)

        if rel.startswith(ZH_MARKER + "/"):
            if current is not None:
                dropped.append(current)
            blog_winners[key] = rel
        elif rel.startswith(EN_MARKER + "/"):
            if current is None:
                blog_winners[key] = rel
            else:
                dropped.append(rel)
        else:
            dropped.append(rel)

    selected = [blog_winners[key] for key in sorted(blog_winners)] + static_pages

    logger.info(
        "Corpus selection: %d candidates -> %d selected (%d blog posts, %d static pages)",
        len(selected) + len(dropped),
        len(selected),
        len(blog_winners),
        len(static_pages),
    )

    return SelectionReport(
        selected=selected,
        blog_posts=len(blog_winners),
        static_pages=len(static_pages),
        dropped=sorted(dropped),
    )
