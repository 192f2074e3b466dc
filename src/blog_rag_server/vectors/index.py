"""
FAISS Vector Store

This module implements a persistent FAISS-backed vector store with the
key-value semantics the retrieval layer expects:

- ``query`` with optional flat equality metadata filter
- ``upsert`` that replaces items sharing an id
- ``delete_by_ids`` / ``clear``

Key Properties
--------------
- String ids mapped onto int64 FAISS ids via IndexIDMap2
- Cosine similarity (L2-normalized inner product)
- Crash-safe persistence (index + metadata)
- Concurrency-safe (thread locking)
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import faiss
import numpy as np

from .models import IndexedItem, ItemMetadata, QueryResponse, VectorMatch
from ..config import settings

logger = logging.getLogger("blograg.vectors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class VectorStoreError(RuntimeError):
    """Base error for vector store failures."""


class VectorStorePersistenceError(VectorStoreError):
    """Raised when index persistence fails."""


# ---------------------------------------------------------------------
# FAISS Store
# ---------------------------------------------------------------------

class FaissVectorStore:
    """
    Persistent FAISS store keyed by string ids.

    Methods are ``async`` so callers can race them against timeouts the
    same way they would a remote store. The FAISS work runs in a worker
    thread under an internal lock, so it never blocks the event loop.
    """

    def __init__(
        self,
        index_path: Optional[str] = None,
        meta_path: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        index_path : Optional[str]
            Filesystem path to persist the FAISS index.
            Defaults to settings.vector_index_path.

        meta_path : Optional[str]
            Filesystem path to persist metadata (id map + next_id).
            Defaults to settings.vector_meta_path.
        """
        self._index_path = index_path or settings.vector_index_path
        self._meta_path = meta_path or settings.vector_meta_path

        self._index: Optional[faiss.IndexIDMap2] = None
        self._ids: Dict[str, int] = {}
        self._records: Dict[int, Tuple[str, ItemMetadata]] = {}
        self._next_id: int = 0

        self._lock = RLock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _init_index(self, dim: int) -> None:
        base = faiss.IndexFlatIP(dim)
        self._index = faiss.IndexIDMap2(base)

    def _validate_items(self, items: Sequence[IndexedItem]) -> int:
        dim = len(items[0].values)
        if self._index is not None and self._index.d != dim:
            raise VectorStoreError(
                f"Vector dimension {dim} does not match index dimension {self._index.d}."
            )

        for i, item in enumerate(items):
            if len(item.values) != dim:
                raise VectorStoreError(
                    f"Inconsistent embedding dimensionality at index {i}."
                )

        return dim

    def _remove_internal(self, internal_ids: List[int]) -> None:
        if not internal_ids or self._index is None:
            return

        try:
            self._index.remove_ids(np.asarray(internal_ids, dtype="int64"))
        except Exception as exc:
            raise VectorStoreError(
                f"Failed to remove IDs from FAISS: {type(exc).__name__}"
            ) from exc

        for internal in internal_ids:
            record = self._records.pop(internal, None)
            if record is not None:
                self._ids.pop(record[0], None)

    @staticmethod
    def _matches_filter(
        metadata: ItemMetadata,
        flt: Optional[Mapping[str, Any]],
    ) -> bool:
        if not flt:
            return True
        return all(getattr(metadata, key, None) == value for key, value in flt.items())

    # ------------------------------------------------------------------
    # Blocking operations (run in a worker thread)
    # ------------------------------------------------------------------

    def _upsert_sync(self, items: Sequence[IndexedItem]) -> int:
        with self._lock:
            dim = self._validate_items(items)
            if self._index is None:
                self._init_index(dim)

            # Last occurrence wins when a batch repeats an id
            latest: Dict[str, IndexedItem] = {item.id: item for item in items}

            vectors = np.asarray([item.values for item in latest.values()], dtype="float32")
            faiss.normalize_L2(vectors)

            internal_ids = np.arange(
                self._next_id,
                self._next_id + len(latest),
                dtype="int64",
            )

            # Fresh ids are added first; replaced items are only removed
            # once the new vectors are in the index.
            try:
                self._index.add_with_ids(vectors, internal_ids)
            except Exception as exc:
                raise VectorStoreError(
                    f"Failed to add vectors to FAISS: {type(exc).__name__}"
                ) from exc

            self._next_id += len(latest)

            stale = [self._ids[item_id] for item_id in latest if item_id in self._ids]
            try:
                self._remove_internal(stale)
            except VectorStoreError:
                self._index.remove_ids(internal_ids)
                raise

            for internal, item in zip(internal_ids, latest.values()):
                self._ids[item.id] = int(internal)
                self._records[int(internal)] = (item.id, item.metadata)

            return len(latest)

    def _delete_sync(self, ids: Sequence[str]) -> int:
        with self._lock:
            internal = [self._ids[i] for i in dict.fromkeys(ids) if i in self._ids]
            self._remove_internal(internal)
            return len(internal)

    def _clear_sync(self) -> int:
        with self._lock:
            total = len(self._records)
            self._index = None
            self._ids.clear()
            self._records.clear()
            self._next_id = 0
            return total

    def _query_sync(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Mapping[str, Any]],
        return_metadata: bool,
    ) -> QueryResponse:
        with self._lock:
            if self._index is None or not self._records or top_k <= 0:
                return QueryResponse()

            q = np.asarray([vector], dtype="float32")
            if q.shape[1] != self._index.d:
                raise VectorStoreError(
                    f"Query dimension {q.shape[1]} does not match index dimension {self._index.d}."
                )
            faiss.normalize_L2(q)

            # Flat index: over-fetch everything when filtering
            k = self._index.ntotal if filter else min(top_k, self._index.ntotal)
            scores, idxs = self._index.search(q, k)

            matches: List[VectorMatch] = []
            for score, idx in zip(scores[0], idxs[0]):
                idx = int(idx)
                if idx == -1:
                    continue

                record = self._records.get(idx)
                if record is None:
                    continue

                item_id, metadata = record
                if not self._matches_filter(metadata, filter):
                    continue

                matches.append(
                    VectorMatch(
                        id=item_id,
                        score=float(score),
                        metadata=metadata if return_metadata else None,
                    )
                )
                if len(matches) >= top_k:
                    break

            return QueryResponse(matches=matches)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upsert(self, items: Sequence[IndexedItem]) -> int:
        """
        Insert items, replacing any stored item with the same id.

        The batch is applied as a whole: if FAISS rejects it, previously
        stored items are left untouched.

        Returns the number of items written.
        """
        if not items:
            return 0
        return await asyncio.to_thread(self._upsert_sync, items)

    async def delete_by_ids(self, ids: Sequence[str]) -> int:
        """
        Remove items by id. Unknown ids are ignored.

        Returns the number of removed items.
        """
        return await asyncio.to_thread(self._delete_sync, ids)

    async def clear(self) -> int:
        """Remove every item. Returns the number removed."""
        return await asyncio.to_thread(self._clear_sync)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
        return_metadata: bool = True,
    ) -> QueryResponse:
        """
        Nearest-neighbor query.

        The search runs in a worker thread, so callers can cancel the wait
        (e.g. with ``asyncio.wait_for``) without blocking the event loop.

        Parameters
        ----------
        vector : Sequence[float]
            Query vector.

        top_k : int
            Maximum number of matches.

        filter : Optional[Mapping[str, Any]]
            Flat equality predicate on metadata keys, e.g. ``{"language": "en"}``.

        return_metadata : bool
            Attach stored metadata to each match.

        Returns
        -------
        QueryResponse
            Matches ordered by descending similarity.
        """
        return await asyncio.to_thread(
            self._query_sync, vector, top_k, filter, return_metadata
        )

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def get_stats(self) -> dict:
        """
        Return store statistics for diagnostics.
        """
        with self._lock:
            languages: Dict[str, int] = {}
            sources = set()

            for _, metadata in self._records.values():
                lang = metadata.language or "unknown"
                languages[lang] = languages.get(lang, 0) + 1
                if metadata.source:
                    sources.add(metadata.source)

            return {
                "total_vectors": len(self._records),
                "total_sources": len(sources),
                "languages": languages,
            }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """
        Persist both FAISS index and metadata to disk.
        """
        with self._lock:
            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            if self._index is None:
                # An empty store is persisted by removing stale files
                index_path.unlink(missing_ok=True)
                meta_path.unlink(missing_ok=True)
                return

            index_path.parent.mkdir(parents=True, exist_ok=True)

            try:
                faiss.write_index(self._index, str(index_path))
            except Exception as exc:
                raise VectorStorePersistenceError(
                    f"Failed to write FAISS index: {type(exc).__name__}"
                ) from exc

            meta = {
                "next_id": self._next_id,
                "records": {
                    str(internal): {"id": item_id, "metadata": metadata.model_dump()}
                    for internal, (item_id, metadata) in self._records.items()
                },
            }

            try:
                meta_path.parent.mkdir(parents=True, exist_ok=True)
                with meta_path.open("w", encoding="utf-8") as f:
                    json.dump(meta, f, ensure_ascii=False)
            except Exception as exc:
                raise VectorStorePersistenceError(
                    f"Failed to write FAISS metadata: {type(exc).__name__}"
                ) from exc

    def load(self) -> None:
        """
        Load index and metadata from disk if available.
        """
        with self._lock:
            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            if not index_path.exists():
                return

            try:
                self._index = faiss.read_index(str(index_path))
            except Exception as exc:
                raise VectorStorePersistenceError(
                    f"Failed to read FAISS index: {type(exc).__name__}"
                ) from exc

            self._ids.clear()
            self._records.clear()
            self._next_id = 0

            if not meta_path.exists():
                return

            try:
                with meta_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)

                self._next_id = int(data.get("next_id", 0))
                for internal, raw in data.get("records", {}).items():
                    metadata = ItemMetadata(**raw.get("metadata", {}))
                    self._records[int(internal)] = (raw["id"], metadata)
                    self._ids[raw["id"]] = int(internal)
            except Exception as exc:
                raise VectorStorePersistenceError(
                    f"Failed to load FAISS metadata: {type(exc).__name__}"
                ) from exc

            logger.info("Loaded %d vectors from %s", len(self._records), index_path)
