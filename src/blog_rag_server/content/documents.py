"""
Content Documents

Loads a markdown file from the content tree into a ``Document``:
front-matter title and draft flag, plus a plain-text rendering of the body.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import frontmatter
from markdown_it import MarkdownIt
from pydantic import BaseModel, ConfigDict, Field

from .paths import Language, language_of, logical_document_key


_md = MarkdownIt("commonmark", {"html": False, "linkify": False, "typographer": False})

_STYLE = re.compile(r"<style[\s\S]*?</style>")
_SCRIPT = re.compile(r"<script[\s\S]*?</script>")
_TAG = re.compile(r"<[^>]+>")
_ENTITY = re.compile(r"&nbsp;|&amp;|&lt;|&gt;|&quot;|&#39;")
_INLINE_WS = re.compile(r"[ \t\f\v]+")
_NEWLINES = re.compile(r"\n+")


class Document(BaseModel):
    """
    A single content file as discovered at ingestion time.
    """

    source_path: str = Field(..., min_length=1, description="Root-relative source path.")
    language: Language
    key: str = Field(..., description="Logical document key shared by translations.")
    title: str = ""
    draft: bool = False
    body: str = Field(default="", description="Markdown body without front-matter.")

    model_config = ConfigDict(frozen=True)


def markdown_to_plain(md_content: str) -> str:
    """
    Convert markdown to plain text by rendering to HTML and stripping tags.
    """
    html = _md.render(md_content)
    text = _STYLE.sub(" ", html)
    text = _SCRIPT.sub(" ", text)
    text = _TAG.sub(" ", text)
    text = _ENTITY.sub(" ", text)
    text = _INLINE_WS.sub(" ", text)
    text = _NEWLINES.sub("\n", text)
    return text.strip()


def _front_matter_title(metadata: dict) -> str:
    title = metadata.get("title") or metadata.get("Title") or ""
    return str(title)


def parse_document(source_path: str, raw: str) -> Document:
    """Build a Document from a root-relative path and raw file contents."""
    post = frontmatter.loads(raw)
    rel = source_path.replace("\\", "/")

    return Document(
        source_path=rel,
        language=language_of(rel),
        key=logical_document_key(rel),
        title=_front_matter_title(post.metadata),
        draft=post.metadata.get("draft") is True,
        body=post.content,
    )


def load_document(content_root: Path, source_path: str) -> Document:
    path = Path(content_root) / source_path
    raw = path.read_text(encoding="utf-8")
    return parse_document(source_path, raw)


def read_title(content_root: Path, source_path: str) -> Optional[str]:
    """Front-matter title of a file, or None when it has none."""
    doc = load_document(content_root, source_path)
    return doc.title or None
