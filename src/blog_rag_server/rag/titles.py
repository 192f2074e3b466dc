"""
Title Dictionary

Read-only mapping from a Chinese document title to the title of its English
translation. It only contains entries for blog posts that exist in both
languages, so a hit also means an English page exists.

The dictionary is built offline from paired content files, persisted as a
flat JSON object, loaded once at startup and injected into the retrieval
engine.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from ..content.documents import read_title
from ..content.paths import EN_MARKER, ZH_MARKER, logical_document_key

logger = logging.getLogger("blograg.titles")


class TitleDictionary:
    """Immutable zh -> en title lookup."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._entries: Mapping[str, str] = MappingProxyType(dict(entries or {}))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, title: object) -> bool:
        return title in self._entries

    def translate(self, chinese_title: str) -> Optional[str]:
        """Return the English title, or None when no translation exists."""
        return self._entries.get(chinese_title)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._entries)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "TitleDictionary":
        """
        Load a persisted dictionary. A missing file yields an empty dictionary.
        """
        p = Path(path)
        if not p.exists():
            logger.warning("Title dictionary not found at %s; English source reconciliation disabled", p)
            return cls()

        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Title dictionary at {p} must be a JSON object")

        entries = {str(k): str(v) for k, v in data.items()}
        logger.info("Loaded %d title translations from %s", len(entries), p)
        return cls(entries)

    def save(self, path: Union[str, Path]) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8") as f:
            json.dump(self.as_dict(), f, ensure_ascii=False, indent=2)


# ---------------------------------------------------------------------
# Offline generation
# ---------------------------------------------------------------------

class TitleDictionaryReport(BaseModel):
    pairs: int = 0
    chinese_only: int = 0
    english_only: int = 0
    failed: int = 0


def build_title_dictionary(
    content_root: Union[str, Path],
    blog_paths: Iterable[str],
) -> Tuple[TitleDictionary, TitleDictionaryReport]:
    """
    Pair Chinese and English blog posts by logical key and map their titles.

    Parameters
    ----------
    content_root : str | Path
        Root of the content tree.

    blog_paths : Iterable[str]
        Root-relative blog post paths of both languages.

    Returns
    -------
    (TitleDictionary, TitleDictionaryReport)
    """
    pairs: Dict[str, Dict[str, str]] = {}
    for rel in blog_paths:
        rel = rel.replace("\\", "/")
        lang = ZH_MARKER if rel.startswith(ZH_MARKER + "/") else EN_MARKER
        pairs.setdefault(logical_document_key(rel), {})[lang] = rel

    entries: Dict[str, str] = {}
    report = TitleDictionaryReport()

    for key in sorted(pairs):
        files = pairs[key]
        zh_file = files.get(ZH_MARKER)
        en_file = files.get(EN_MARKER)

        if zh_file and en_file:
            try:
                zh_title = read_title(Path(content_root), zh_file)
                en_title = read_title(Path(content_root), en_file)
            except Exception as exc:
                logger.error("Failed to read titles for %s: %s", key, exc)
                report.failed += 1
                continue

            if zh_title and en_title:
                entries[zh_title] = en_title
                report.pairs += 1
                logger.debug("%s: %r -> %r", key, zh_title, en_title)
        elif zh_file:
            report.chinese_only += 1
        else:
            report.english_only += 1

    return TitleDictionary(entries), report
