"""
API Models for the Chat Server

This module defines all Pydantic models used for request/response validation
across the chat and admin endpoints.
"""

from __future__ import annotations

from typing import List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from ..rag.prompt import HistoryTurn
from ..rag.retriever import Source


# ---------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------

class ChatRequest(BaseModel):
    """
    Chat request sent by the site widget.
    """
    message: str = Field(..., min_length=1)
    history: List[HistoryTurn] = Field(default_factory=list)
    language: Literal["zh", "en"] = "zh"


class ChatResponse(BaseModel):
    """
    Generated answer plus the sources resolved for the request language.
    """
    answer: str
    sources: List[Source] = Field(default_factory=list)


# ---------------------------------------------------------------------
# Admin Models
# ---------------------------------------------------------------------

class UpsertItem(BaseModel):
    """
    One vector pushed by an external ingestion job.
    """
    id: str = Field(..., min_length=1)
    vector: List[float] = Field(..., min_length=1)
    text: str
    source: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    language: Optional[Literal["zh", "en"]] = None

    model_config = ConfigDict(extra="forbid")


class UpsertRequest(BaseModel):
    items: List[UpsertItem] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class DeleteRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)

    model_config = ConfigDict(extra="forbid")


class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    """
    ok: bool = True
    count: int = Field(default=0, ge=0)


class ClearAllResult(BaseModel):
    ok: bool = True
    total_deleted: int = Field(default=0, ge=0, serialization_alias="totalDeleted")


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    provider: str
    vectors: int = Field(..., ge=0)
    title_translations: int = Field(..., ge=0)
