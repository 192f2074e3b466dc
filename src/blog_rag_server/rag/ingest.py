"""
Content Ingestion

Turns the markdown content tree into IndexedItems in the vector store.

Workflow
--------
1. Discover candidate files (blog posts and static section pages of both
   languages).
2. Reduce them to one file per logical document (corpus selection).
3. Per document, concurrently: load front-matter, skip drafts, convert
   markdown to plain text, chunk, resolve URL and language, embed.
4. Upsert items in batches and persist the store.

The write target is either a local FAISS store or the admin API of a
running server (see ``vectors.remote``).

A failure while processing one document, or while uploading one batch, is
logged and recorded in the report; it never aborts the rest of the run.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from .chunker import chunk_text
from ..config import settings
from ..content.documents import Document, load_document, markdown_to_plain
from ..content.paths import ResolvedPath, resolve_path
from ..content.selector import STATIC_SECTIONS, select_corpus
from ..embeddings.embedder import Embedder
from ..vectors.models import IndexedItem, ItemMetadata

logger = logging.getLogger("blograg.ingest")


BLOG_PATTERNS = ("zh/blog/**/index.md", "en/blog/**/index.md")
STATIC_PATTERNS = tuple(f"*/{section}/_index.md" for section in STATIC_SECTIONS)


# ---------------------------------------------------------------------
# Write Target
# ---------------------------------------------------------------------

class IngestTarget(Protocol):
    """Local FAISS store or the admin API of a running server."""

    async def upsert(self, items: Sequence[IndexedItem]) -> int:
        ...

    async def clear(self) -> int:
        ...

    def save(self) -> None:
        ...


# ---------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------

class IngestReport(BaseModel):
    candidates: int = 0
    selected: int = 0
    processed: int = 0
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    items: int = 0
    failed_items: int = 0
    cleared: int = 0
    dry_run: bool = False


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def discover_candidates(content_root: Path, patterns: Sequence[str] = BLOG_PATTERNS + STATIC_PATTERNS) -> List[str]:
    """Root-relative paths of every file matching the content patterns."""
    root = Path(content_root)
    found = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if path.is_file():
                found.add(path.relative_to(root).as_posix())
    return sorted(found)


def make_item_id(url: str, source_path: str, chunk_index: int) -> str:
    """
    Deterministic item id. The source path keeps zh and en variants of one
    URL apart.
    """
    digest = hashlib.sha256(f"{url}|{source_path}".encode("utf-8")).hexdigest()[:12]
    return f"{digest}-{chunk_index}"


def fit_dimension(vector: Sequence[float], dim: int) -> List[float]:
    """Truncate or zero-pad a vector to exactly ``dim`` values."""
    values = list(vector[:dim])
    if len(values) < dim:
        values.extend([0.0] * (dim - len(values)))
    return values


def _truncate(text: str, limit: int, suffix: str = "") -> str:
    if len(text) > limit:
        return text[:limit] + suffix
    return text


# ---------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------

class IngestionPipeline:
    """
    Ingests a content tree into a vector store.
    """

    def __init__(
        self,
        store: IngestTarget,
        embedder: Optional[Embedder],
        content_root: Optional[Path] = None,
        base_url: Optional[str] = None,
        chunk_max_len: Optional[int] = None,
        dim: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.content_root = Path(content_root or settings.content_dir).resolve()
        self.base_url = base_url or settings.base_url
        self.chunk_max_len = chunk_max_len or settings.chunk_max_len
        self.dim = dim or settings.embed_dim
        self.concurrency = concurrency or settings.ingest_concurrency

    # ------------------------------------------------------------------
    # Per-document work
    # ------------------------------------------------------------------

    def prepare(self, source_path: str) -> Tuple[Document, ResolvedPath, List[str]]:
        """
        Load, resolve and chunk one document without embedding it.
        """
        resolved = resolve_path(source_path, self.base_url)
        doc = load_document(self.content_root, source_path)
        if doc.draft:
            return doc, resolved, []

        plain = markdown_to_plain(doc.body)
        return doc, resolved, chunk_text(plain, self.chunk_max_len)

    def build_items(
        self,
        doc: Document,
        resolved: ResolvedPath,
        chunks: Sequence[str],
        vectors: Sequence[Sequence[float]],
    ) -> List[IndexedItem]:
        title = _truncate(doc.title, settings.metadata_title_limit)

        return [
            IndexedItem(
                id=make_item_id(resolved.url, doc.source_path, index),
                values=fit_dimension(vector, self.dim),
                metadata=ItemMetadata(
                    text=_truncate(chunk, settings.metadata_text_limit, "..."),
                    title=title,
                    source=doc.source_path,
                    url=resolved.url,
                    language=resolved.language,
                ),
            )
            for index, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]

    async def process_file(self, source_path: str) -> List[IndexedItem]:
        """
        Produce every IndexedItem of one document. Drafts yield no items.
        """
        doc, resolved, chunks = self.prepare(source_path)
        if not chunks:
            return []

        if self.embedder is None:
            raise RuntimeError("An embedder is required to ingest documents")

        vectors = await self.embedder.embed(chunks, batch_size=settings.embedding_batch_size)
        return self.build_items(doc, resolved, chunks, vectors)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, dry_run: bool = False, full_reindex: bool = False) -> IngestReport:
        """
        Ingest the whole content tree.

        Parameters
        ----------
        dry_run : bool
            Resolve and chunk only; nothing is embedded or written.

        full_reindex : bool
            Clear the store before ingesting.
        """
        candidates = discover_candidates(self.content_root)
        selection = select_corpus(candidates)
        report = IngestReport(
            candidates=len(candidates),
            selected=len(selection.selected),
            dry_run=dry_run,
        )

        logger.info(
            "Found %d candidate files, deduplicated to %d (blog posts: %d, static pages: %d)",
            len(candidates),
            len(selection.selected),
            selection.blog_posts,
            selection.static_pages,
        )

        if dry_run:
            for source_path in selection.selected:
                try:
                    doc, resolved, chunks = self.prepare(source_path)
                except Exception as exc:
                    logger.error("%s: %s", source_path, exc)
                    report.failed.append(source_path)
                    continue

                if not chunks:
                    report.skipped.append(source_path)
                    continue

                logger.info("%s -> %s [%s] %d chunks", source_path, resolved.url, resolved.language, len(chunks))
                report.processed += 1
                report.items += len(chunks)
            return report

        if full_reindex:
            report.cleared = await self.store.clear()
            logger.info("Cleared %d vectors before reindex", report.cleared)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _guarded(source_path: str) -> Optional[List[IndexedItem]]:
            async with semaphore:
                try:
                    return await self.process_file(source_path)
                except Exception as exc:
                    logger.error("Failed to process %s: %s", source_path, exc)
                    return None

        results = await asyncio.gather(*(_guarded(p) for p in selection.selected))

        pending: List[IndexedItem] = []
        for source_path, items in zip(selection.selected, results):
            if items is None:
                report.failed.append(source_path)
            elif not items:
                report.skipped.append(source_path)
            else:
                logger.info("%s: %d chunks", source_path, len(items))
                report.processed += 1
                pending.extend(items)

        batch_size = settings.upload_batch_size
        for start in range(0, len(pending), batch_size):
            batch = pending[start : start + batch_size]
            try:
                report.items += await self.store.upsert(batch)
            except Exception as exc:
                logger.error("Failed to upsert batch of %d items at offset %d: %s", len(batch), start, exc)
                report.failed_items += len(batch)
                continue
            logger.info("Upserted batch: %d items (total: %d)", len(batch), report.items)

        self.store.save()

        logger.info(
            "Ingestion completed: %d/%d files, %d items, %d failed files, %d failed items",
            report.processed,
            report.selected,
            report.items,
            len(report.failed),
            report.failed_items,
        )
        return report
