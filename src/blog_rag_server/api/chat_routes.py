"""
Chat Routes: Retrieval-Augmented Answers

This module implements the conversational endpoint used by the site widget.

Major Responsibilities
----------------------
1. Embed the current message only (history is kept out of retrieval).
2. Retrieve language-scoped context and sources.
3. Build the language-specific prompt, including recent history.
4. Generate the answer and return it with the resolved sources.

Failures of the fallback vector query or of the providers propagate to the
upstream error handler registered in ``main``, which returns an explicit
error payload.
"""

from fastapi import APIRouter, Depends, status
from typing import Annotated
import logging

from .models import ChatRequest, ChatResponse
from .dependencies import get_embedder, get_llm_client, get_retrieval_engine
from ..config import settings
from ..embeddings.embedder import Embedder, EmbeddingError
from ..llm.client import LLMClient
from ..rag.prompt import build_prompt
from ..rag.retriever import RetrievalEngine

logger = logging.getLogger("blograg.chat")

router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Answer a question from the blog knowledge base",
    status_code=status.HTTP_200_OK,
)
async def chat(
    req: ChatRequest,
    embedder: Annotated[Embedder, Depends(get_embedder)],
    engine: Annotated[RetrievalEngine, Depends(get_retrieval_engine)],
    llm: Annotated[LLMClient, Depends(get_llm_client)],
) -> ChatResponse:
    """
    Parameters
    ----------
    req : ChatRequest
        Contains:
        - message: the user question
        - history: prior turns, used for the prompt only
        - language: "zh" (default) or "en"

    Returns
    -------
    ChatResponse
        Generated answer + sources in the request language.
    """
    logger.info("Chat request (language=%s, history=%d)", req.language, len(req.history))

    vectors = await embedder.embed([req.message])
    if not vectors:
        raise EmbeddingError("Embedding provider returned no vector for the message.")

    result = await engine.retrieve(
        vectors[0],
        k=settings.retrieval_top_k,
        language=req.language,
    )

    prompt = build_prompt(req.message, result.contexts, req.history, req.language)
    answer = await llm.generate(prompt)

    return ChatResponse(answer=answer, sources=result.sources)
