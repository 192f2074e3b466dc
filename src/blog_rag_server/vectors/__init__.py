"""
Vector Store Package

Provides the FAISS-backed vector store, the admin API client used to push
items to a running server, and the models for stored items and query
results.
"""

from .index import FaissVectorStore, VectorStoreError, VectorStorePersistenceError
from .models import IndexedItem, ItemMetadata, QueryResponse, VectorMatch
from .remote import AdminApiStore, RemoteStoreError

__all__ = [
    "FaissVectorStore",
    "VectorStoreError",
    "VectorStorePersistenceError",
    "AdminApiStore",
    "RemoteStoreError",
    "IndexedItem",
    "ItemMetadata",
    "QueryResponse",
    "VectorMatch",
]
