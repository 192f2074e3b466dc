"""
Vector Store Data Models

Canonical models for the unit stored in the vector store (one embedding
vector per text chunk) and for nearest-neighbor query results.
"""

from __future__ import annotations

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict


class ItemMetadata(BaseModel):
    """
    Flat metadata attached to every stored vector.

    ``language`` is the only key used by query-time filters.
    """

    text: Optional[str] = Field(
        default=None,
        description="Chunk text (possibly truncated) returned as retrieval context.",
    )

    title: Optional[str] = Field(
        default=None,
        description="Front-matter title of the parent document.",
    )

    source: Optional[str] = Field(
        default=None,
        description="Root-relative source path of the parent document.",
    )

    url: Optional[str] = Field(
        default=None,
        description="Canonical URL of the parent document.",
    )

    language: Optional[str] = Field(
        default=None,
        description="Language tag of the parent document (zh | en).",
    )

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
    )


class IndexedItem(BaseModel):
    """
    A single stored vector.

    The id is a deterministic function of canonical URL, source path and
    chunk index, so re-ingesting a document replaces its items.
    """

    id: str = Field(..., min_length=1)
    values: List[float] = Field(..., min_length=1)
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


class VectorMatch(BaseModel):
    """One nearest-neighbor hit, in relevance order."""

    id: str
    score: float
    metadata: Optional[ItemMetadata] = None

    model_config = ConfigDict(frozen=True)


class QueryResponse(BaseModel):
    matches: List[VectorMatch] = Field(default_factory=list)
