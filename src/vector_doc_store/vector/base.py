"""Document store interface."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from vector_doc_store.documents import Document, DocumentId


class VectorStore(ABC):
    """Abstract interface for storing and searching documents by embedding.

    Contract:
        Identifiers returned by ``add_documents`` are the keys accepted by
        ``delete`` and the ``id`` set on documents returned by searches.
        Filters are backend objects and are passed through uninterpreted.
    """

    @abstractmethod
    async def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: Any | None = None,
    ) -> list[Document]:
        """Return up to k documents closest to the query, closest first.

        Args:
            query: Text to search with.
            k: Maximum number of results.
            filter: Optional backend filter restricting candidate rows.

        Returns:
            Matching documents; empty when nothing matches.
        """
        ...

    @abstractmethod
    async def add_documents(
        self,
        documents: Sequence[Document],
        ids: Sequence[DocumentId] | None = None,
    ) -> list[DocumentId]:
        """Insert documents, or replace the rows with the given ids.

        Args:
            documents: Documents to write.
            ids: Optional identifiers, one per document. Existing rows with
                these ids are fully replaced.

        Returns:
            Identifiers used, in input order.
        """
        ...

    @abstractmethod
    async def delete(
        self,
        ids: Sequence[DocumentId] | None = None,
        filter: Any | None = None,
    ) -> None:
        """Delete rows by id or by filter.

        Deleting rows that do not exist is not an error.
        """
        ...
