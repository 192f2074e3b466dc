from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_title_dictionary, get_vector_store
from .models import HealthResponse
from ..config import settings
from ..rag.titles import TitleDictionary
from ..vectors.index import FaissVectorStore

router = APIRouter(tags=["health"])

@router.get("/health", response_model=HealthResponse)
def health(
    store: Annotated[FaissVectorStore, Depends(get_vector_store)],
    titles: Annotated[TitleDictionary, Depends(get_title_dictionary)],
) -> HealthResponse:
    return HealthResponse(
        provider=settings.provider,
        vectors=store.count(),
        title_translations=len(titles),
    )
