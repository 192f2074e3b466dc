import logging
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends

from ..config import settings
from ..llm.client import LLMClient
from ..embeddings.embedder import Embedder
from ..rag.retriever import RetrievalEngine
from ..rag.titles import TitleDictionary
from ..vectors.index import FaissVectorStore

logger = logging.getLogger("blograg.dependencies")

_global_store: Optional[FaissVectorStore] = None


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()


@lru_cache
def get_embedder() -> Embedder:
    return Embedder()


def get_vector_store() -> FaissVectorStore:
    global _global_store
    if _global_store is not None:
        return _global_store

    store = FaissVectorStore()
    try:
        store.load()
    except Exception:
        # Serve from an empty store; admin upserts will populate it
        logger.exception("Failed to load vector store; starting empty")
        store = FaissVectorStore()

    _global_store = store
    return store


@lru_cache
def get_title_dictionary() -> TitleDictionary:
    return TitleDictionary.load(settings.title_dictionary_path)


def get_retrieval_engine(
    store: Annotated[FaissVectorStore, Depends(get_vector_store)],
    titles: Annotated[TitleDictionary, Depends(get_title_dictionary)],
) -> RetrievalEngine:
    return RetrievalEngine(store, titles, filter_timeout=settings.language_filter_timeout)
