"""Vector store implementations and interfaces."""

from vector_doc_store.vector.base import VectorStore
from vector_doc_store.vector.qdrant_client import (
    QdrantDocumentStore,
    StoreConfig,
    create_qdrant_client,
)

__all__ = ["QdrantDocumentStore", "StoreConfig", "VectorStore", "create_qdrant_client"]
