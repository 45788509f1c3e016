"""Error types raised by the document store and its embedders.

Errors raised by the Qdrant client itself are not wrapped; they reach the
caller unchanged.
"""


class VectorStoreError(Exception):
    """Base class for document store errors."""

    pass


class ConfigurationError(VectorStoreError, ValueError):
    """Raised when store arguments or configuration are invalid."""

    pass


class CollectionNotFoundError(VectorStoreError):
    """Raised when the backing collection does not exist."""

    def __init__(self, collection_name: str) -> None:
        super().__init__(f"Collection '{collection_name}' does not exist.")
        self.collection_name = collection_name


class EmbeddingError(VectorStoreError):
    """Raised when an embedding request fails or returns malformed data."""

    pass
