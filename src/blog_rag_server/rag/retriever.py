"""
Language-Aware Retrieval

This module turns a query vector into prompt context and a source list,
scoped to the language of the chat widget.

Flow
----
1. Filtered query: nearest-neighbor query restricted to
   ``language == <requested>``, raced against a short timeout.
2. Fallback: when the filtered query times out, fails or returns nothing,
   one unfiltered query with the same ``k``. A failure here is fatal.
3. Validation: matches without text are discarded.
4. Post-filter (fallback only): keep matches whose URL language agrees
   with the request. English requests with no English match at all keep
   the Chinese matches instead, to be reconciled by title translation.
5. Source resolution: for English requests, Chinese sources are rewritten
   to their English URL and title via the TitleDictionary, or dropped when
   no translation exists.
6. Dedup: placeholder URLs are removed and repeated URLs collapse to their
   first (most relevant) occurrence.

The filtered-query outcome is a tagged value (``FilteredOk`` or
``NeedsFallback``) rather than an exception.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Union
from urllib.parse import urlparse, urlunparse

from pydantic import BaseModel, Field

from .titles import TitleDictionary
from ..content.paths import EN_MARKER, Language
from ..core.errors import FallbackQueryFailure
from ..vectors.models import QueryResponse, VectorMatch

logger = logging.getLogger("blograg.retriever")


DEFAULT_FILTER_TIMEOUT = 0.5  # seconds
CONTEXT_SEPARATOR = "\n---\n"
PLACEHOLDER_URL = "#"

_LANG_PREFIX = re.compile(r"^/(zh|en)(?=/|$)")


# ---------------------------------------------------------------------
# Collaborator Interface
# ---------------------------------------------------------------------

class VectorQueryBackend(Protocol):
    async def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
        return_metadata: bool = True,
    ) -> QueryResponse:
        ...


# ---------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------

class Source(BaseModel):
    """A citable document shown under the answer."""

    id: str
    url: str
    title: str


class RetrievalResult(BaseModel):
    """
    Per-request retrieval outcome.

    ``contexts`` is built from every retained match, while ``sources`` only
    lists documents that can be shown in the requested language, so an
    English request can carry Chinese context with no sources.
    """

    contexts: str = ""
    sources: List[Source] = Field(default_factory=list)
    used_fallback: bool = False
    matches: List[VectorMatch] = Field(default_factory=list)


class FallbackReason(str, Enum):
    TIMEOUT = "timeout"
    FAILURE = "failure"
    EMPTY = "empty"


@dataclass(frozen=True)
class FilteredOk:
    """The language-filtered query produced at least one match."""
    matches: List[VectorMatch]


@dataclass(frozen=True)
class NeedsFallback:
    """The language-filtered query must be replaced by an unfiltered one."""
    reason: FallbackReason
    detail: str = ""


FilteredOutcome = Union[FilteredOk, NeedsFallback]


# ---------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------

def has_english_marker(url: str) -> bool:
    """True when the URL path starts with the English language segment."""
    path = urlparse(url).path
    return path == "/" + EN_MARKER or path.startswith("/" + EN_MARKER + "/")


def convert_url_for_language(original_url: str, target_language: str) -> str:
    """
    Rewrite the leading language segment of a URL for ``target_language``.

    Chinese URLs carry no prefix; English URLs get ``/en``.
    """
    if not original_url or original_url == PLACEHOLDER_URL:
        return original_url

    try:
        parsed = urlparse(original_url)
    except ValueError as exc:
        logger.warning("Failed to convert URL %r: %s", original_url, exc)
        return original_url

    path = _LANG_PREFIX.sub("", parsed.path)
    if target_language == EN_MARKER:
        path = "/" + EN_MARKER + path

    return urlunparse(parsed._replace(path=path))


# ---------------------------------------------------------------------
# Retrieval Engine
# ---------------------------------------------------------------------

class RetrievalEngine:
    """
    Orchestrates filtered query, fallback, language reconciliation and dedup.

    The engine holds no per-request state and is safe to share between
    concurrent requests.
    """

    def __init__(
        self,
        store: VectorQueryBackend,
        titles: TitleDictionary,
        filter_timeout: float = DEFAULT_FILTER_TIMEOUT,
    ) -> None:
        self._store = store
        self._titles = titles
        self._filter_timeout = filter_timeout

    # ------------------------------------------------------------------
    # Query stages
    # ------------------------------------------------------------------

    async def filtered_query(
        self,
        vector: Sequence[float],
        k: int,
        language: Language,
    ) -> FilteredOutcome:
        """
        Language-filtered query raced against the filter timeout.

        Never raises for store failures; they become ``NeedsFallback``.
        """
        try:
            response = await asyncio.wait_for(
                self._store.query(
                    vector,
                    top_k=k,
                    filter={"language": language},
                    return_metadata=True,
                ),
                timeout=self._filter_timeout,
            )
        except asyncio.TimeoutError:
            return NeedsFallback(
                FallbackReason.TIMEOUT,
                f"language filter exceeded {self._filter_timeout}s",
            )
        except Exception as exc:
            return NeedsFallback(FallbackReason.FAILURE, f"{type(exc).__name__}: {exc}")

        logger.debug("Language-filtered matches: %d", len(response.matches))

        if not response.matches:
            return NeedsFallback(FallbackReason.EMPTY, "no language-filtered results")

        return FilteredOk(list(response.matches))

    async def fallback_query(self, vector: Sequence[float], k: int) -> List[VectorMatch]:
        """
        Unfiltered query. Failures are surfaced as ``FallbackQueryFailure``.
        """
        try:
            response = await self._store.query(vector, top_k=k, return_metadata=True)
        except Exception as exc:
            logger.error("Fallback query failed: %s", exc)
            raise FallbackQueryFailure(
                f"Vector query failed: {type(exc).__name__}"
            ) from exc

        logger.debug("Fallback query matches: %d", len(response.matches))
        return list(response.matches)

    # ------------------------------------------------------------------
    # Match processing
    # ------------------------------------------------------------------

    @staticmethod
    def post_filter(matches: List[VectorMatch], language: Language) -> List[VectorMatch]:
        """
        Language-consistency filter applied to fallback results.
        """
        if language == "zh":
            return [m for m in matches if not has_english_marker(m.metadata.url or "")]

        if language == "en":
            any_english = any(has_english_marker(m.metadata.url or "") for m in matches)
            if not any_english:
                logger.info("No English content found; keeping Chinese matches for title translation")
            return [
                m for m in matches
                if has_english_marker(m.metadata.url or "") == any_english
            ]

        return list(matches)

    def resolve_source(self, match: VectorMatch, language: Language) -> Optional[Source]:
        """
        Build the source record for a match, or None when it must not be shown.
        """
        metadata = match.metadata
        original_url = metadata.url or PLACEHOLDER_URL
        original_title = metadata.title or metadata.source or match.id

        if language == "en" and not has_english_marker(original_url):
            translated = self._titles.translate(original_title)
            if translated is None:
                logger.debug("No English version for %r; source excluded", original_title)
                return None

            final_url = convert_url_for_language(original_url, language)
            logger.debug("English version found: %r -> %r (%s)", original_title, translated, final_url)
            return Source(id=match.id, url=final_url, title=translated)

        return Source(id=match.id, url=original_url, title=original_title)

    @staticmethod
    def dedup_sources(sources: List[Source]) -> List[Source]:
        seen = set()
        unique: List[Source] = []

        for source in sources:
            if source.url == PLACEHOLDER_URL or source.url in seen:
                continue
            seen.add(source.url)
            unique.append(source)

        return unique

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def retrieve(
        self,
        vector: Sequence[float],
        k: int = 15,
        language: Language = "zh",
    ) -> RetrievalResult:
        """
        Retrieve context and sources for a query vector.

        Parameters
        ----------
        vector : Sequence[float]
            Query embedding.

        k : int
            Number of nearest neighbors requested from the store.

        language : "zh" | "en"
            Language context of the chat request.

        Returns
        -------
        RetrievalResult

        Raises
        ------
        FallbackQueryFailure
            If the unfiltered fallback query fails.
        """
        outcome = await self.filtered_query(vector, k, language)

        if isinstance(outcome, FilteredOk):
            used_fallback = False
            matches = outcome.matches
        else:
            logger.info(
                "Language filter (%s) not usable (%s: %s); using fallback",
                language,
                outcome.reason.value,
                outcome.detail,
            )
            used_fallback = True
            matches = await self.fallback_query(vector, k)

        if not matches:
            logger.info("No matches found (used_fallback=%s)", used_fallback)
            return RetrievalResult(used_fallback=used_fallback)

        retained = [m for m in matches if m.metadata is not None and m.metadata.text]
        if not retained:
            logger.info("No match carried text metadata")
            return RetrievalResult(used_fallback=used_fallback, matches=matches)

        if used_fallback:
            before = len(retained)
            retained = self.post_filter(retained, language)
            logger.info("Post-query language filtering: %d -> %d matches", before, len(retained))

        contexts = CONTEXT_SEPARATOR.join(m.metadata.text for m in retained)

        resolved = [
            source
            for source in (self.resolve_source(m, language) for m in retained)
            if source is not None
        ]
        sources = self.dedup_sources(resolved)

        logger.info(
            "Retrieved %d chars of context, %d sources (used_fallback=%s)",
            len(contexts),
            len(sources),
            used_fallback,
        )

        return RetrievalResult(
            contexts=contexts,
            sources=sources,
            used_fallback=used_fallback,
            matches=matches,
        )
