"""Async document store over a Qdrant collection with pluggable embeddings."""

from vector_doc_store.documents import (
    Document,
    DocumentId,
    MetadataSchema,
    MetadataValue,
)
from vector_doc_store.embeddings import Embeddings, OpenAIEmbeddings
from vector_doc_store.exceptions import (
    CollectionNotFoundError,
    ConfigurationError,
    EmbeddingError,
    VectorStoreError,
)
from vector_doc_store.vector import (
    QdrantDocumentStore,
    StoreConfig,
    VectorStore,
    create_qdrant_client,
)

__all__ = [
    "CollectionNotFoundError",
    "ConfigurationError",
    "Document",
    "DocumentId",
    "EmbeddingError",
    "Embeddings",
    "MetadataSchema",
    "MetadataValue",
    "OpenAIEmbeddings",
    "QdrantDocumentStore",
    "StoreConfig",
    "VectorStore",
    "VectorStoreError",
    "create_qdrant_client",
]
