"""
Admin Routes

Endpoints used by trusted ingestion jobs to synchronize the vector store:
- Upsert pre-embedded items
- Delete items by id
- Clear the whole store

Every route requires the static admin bearer token.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from typing import Annotated
import logging

from .models import (
    ClearAllResult,
    DeleteRequest,
    OperationResult,
    UpsertRequest,
)
from .dependencies import get_vector_store
from ..auth.security import require_admin_token
from ..config import settings
from ..vectors.index import FaissVectorStore
from ..vectors.models import IndexedItem, ItemMetadata

logger = logging.getLogger("blograg.admin")

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_token)],
)


@router.post(
    "/upsert",
    response_model=OperationResult,
    summary="Insert or replace vectors",
)
async def upsert(
    req: UpsertRequest,
    store: Annotated[FaissVectorStore, Depends(get_vector_store)],
) -> OperationResult:
    """
    Validate vector dimensions, then insert or replace every item.
    """
    for item in req.items:
        if len(item.vector) != settings.embed_dim:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Invalid vector dimension: expected {settings.embed_dim}, "
                    f"got {len(item.vector)}"
                ),
            )

    items = [
        IndexedItem(
            id=item.id,
            values=item.vector,
            metadata=ItemMetadata(
                text=item.text,
                source=item.source,
                title=item.title,
                url=item.url,
                language=item.language,
            ),
        )
        for item in req.items
    ]

    await store.upsert(items)
    store.save()
    logger.info("Upserted %d items", len(items))

    return OperationResult(count=len(req.items))


@router.delete(
    "/delete",
    response_model=OperationResult,
    summary="Delete vectors by id",
)
async def delete(
    req: DeleteRequest,
    store: Annotated[FaissVectorStore, Depends(get_vector_store)],
) -> OperationResult:
    removed = await store.delete_by_ids(req.ids)
    store.save()
    logger.info("Deleted %d of %d requested ids", removed, len(req.ids))

    return OperationResult(count=removed)


@router.delete(
    "/clear-all",
    response_model=ClearAllResult,
    summary="Delete every vector",
)
async def clear_all(
    store: Annotated[FaissVectorStore, Depends(get_vector_store)],
) -> ClearAllResult:
    total = await store.clear()
    store.save()
    logger.info("Clear all completed. Total deleted: %d", total)

    return ClearAllResult(total_deleted=total)
