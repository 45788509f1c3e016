"""Qdrant-backed document store."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models

from vector_doc_store.config import Settings
from vector_doc_store.documents import Document, DocumentId, MetadataSchema
from vector_doc_store.embeddings.base import Embeddings
from vector_doc_store.exceptions import (
    CollectionNotFoundError,
    ConfigurationError,
    EmbeddingError,
)
from vector_doc_store.vector.base import VectorStore

logger = logging.getLogger(__name__)

FilterLike = models.Filter | dict[str, Any]


@dataclass(frozen=True)
class StoreConfig:
    """Collection binding used by the store factory methods."""

    index_name: str
    text_key: str = "text"
    metadata_keys: tuple[str, ...] = ()
    distance: models.Distance = models.Distance.COSINE
    vector_name: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> StoreConfig:
        return cls(
            index_name=settings.qdrant_collection,
            text_key=settings.text_key,
            metadata_keys=tuple(settings.metadata_keys),
        )


def create_qdrant_client(settings: Settings) -> AsyncQdrantClient:
    """Build a Qdrant client from settings.

    A configured ``qdrant_url`` (managed cluster) wins over host and port.
    The caller owns the returned client and is responsible for closing it.
    """
    if settings.qdrant_url:
        return AsyncQdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefer_grpc=settings.qdrant_prefer_grpc,
        )
    return AsyncQdrantClient(
        host=settings.qdrant_host,
        port=settings.qdrant_port,
        grpc_port=settings.qdrant_grpc_port,
        prefer_grpc=settings.qdrant_prefer_grpc,
        https=settings.qdrant_https,
        api_key=settings.qdrant_api_key,
    )


class QdrantDocumentStore(VectorStore):
    """Document store mapping documents onto points of a Qdrant collection.

    Each point carries the raw text under ``text_key``, the declared metadata
    paths as flat payload columns, and the text embedding. The client is
    borrowed: the store never closes it.
    """

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        embeddings: Embeddings,
        text_key: str = "text",
        metadata_keys: Sequence[str] | None = None,
        distance: models.Distance = models.Distance.COSINE,
        vector_name: str | None = None,
    ) -> None:
        """Initialize the document store.

        Args:
            client: Qdrant client used for all collection operations.
            collection_name: Name of the backing collection.
            embeddings: Embedder used for documents and queries.
            text_key: Payload field holding the document text.
            metadata_keys: Dotted metadata paths to persist.
            distance: Distance metric used when creating the collection.
            vector_name: Optional named vector to use for multi-vector collections.
        """
        if not isinstance(collection_name, str) or not collection_name.strip():
            raise ConfigurationError("Collection name must be a non-empty string.")
        if not isinstance(text_key, str) or not text_key:
            raise ConfigurationError("Text key must be a non-empty string.")
        schema = MetadataSchema.from_keys(metadata_keys)
        if text_key in schema.columns:
            raise ConfigurationError(
                f"Text key '{text_key}' collides with a metadata column."
            )
        if vector_name is not None and not vector_name.strip():
            raise ConfigurationError("Vector name must be a non-empty string.")

        self._client = client
        self._collection_name = collection_name
        self._embeddings = embeddings
        self._text_key = text_key
        self._schema = schema
        self._distance = distance
        self._vector_name = vector_name
        self._collection_ready = False

    @classmethod
    def from_config(
        cls,
        client: AsyncQdrantClient,
        embeddings: Embeddings,
        config: StoreConfig,
    ) -> QdrantDocumentStore:
        return cls(
            client=client,
            collection_name=config.index_name,
            embeddings=embeddings,
            text_key=config.text_key,
            metadata_keys=config.metadata_keys,
            distance=config.distance,
            vector_name=config.vector_name,
        )

    @classmethod
    async def from_texts(
        cls,
        texts: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]] | None,
        embeddings: Embeddings,
        config: StoreConfig,
        *,
        client: AsyncQdrantClient,
    ) -> QdrantDocumentStore:
        """Create the collection if needed and insert texts as new points.

        An existing collection with the same name is reused, so repeated
        calls add to it.

        Raises:
            ConfigurationError: If texts and metadatas differ in length, or
                there are no texts and the collection does not exist yet.
        """
        texts = list(texts)
        metadatas = _normalize_metadatas(texts, metadatas)
        store = cls.from_config(client, embeddings, config)

        vectors = await store._embed_texts(texts)
        if vectors:
            await store.ensure_collection(len(vectors[0]))
        elif not await client.collection_exists(store.collection_name):
            raise ConfigurationError(
                "Cannot create a collection without texts to size its vectors."
            )
        else:
            store._collection_ready = True

        ids = [_new_point_id() for _ in texts]
        await store._write(texts, metadatas, vectors, ids)
        logger.info(
            "Inserted %d documents into collection '%s'",
            len(ids),
            store.collection_name,
        )
        return store

    @classmethod
    async def from_documents(
        cls,
        documents: Sequence[Document],
        embeddings: Embeddings,
        config: StoreConfig,
        *,
        client: AsyncQdrantClient,
    ) -> QdrantDocumentStore:
        """Same as from_texts; identifiers on the documents are ignored."""
        return await cls.from_texts(
            [doc.page_content for doc in documents],
            [doc.metadata for doc in documents],
            embeddings,
            config,
            client=client,
        )

    @classmethod
    async def from_existing_collection(
        cls,
        embeddings: Embeddings,
        config: StoreConfig,
        *,
        client: AsyncQdrantClient,
    ) -> QdrantDocumentStore:
        """Bind to a collection that must already exist."""
        store = cls.from_config(client, embeddings, config)
        await store._require_collection()
        return store

    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def text_key(self) -> str:
        return self._text_key

    @property
    def metadata_schema(self) -> MetadataSchema:
        return self._schema

    @property
    def embeddings(self) -> Embeddings:
        return self._embeddings

    async def ensure_collection(self, vector_size: int) -> bool:
        """Create the backing collection if it does not exist.

        Returns:
            True if the collection was created by this call.
        """
        if vector_size < 1:
            raise ConfigurationError("Vector size must be at least 1.")
        if await self._client.collection_exists(self._collection_name):
            self._collection_ready = True
            return False

        await self._client.create_collection(
            collection_name=self._collection_name,
            vectors_config=self._build_vectors_config(vector_size),
        )
        logger.info(
            "Created collection '%s' (size=%d, distance=%s)",
            self._collection_name,
            vector_size,
            self._distance,
        )
        self._collection_ready = True
        return True

    async def delete_collection(self) -> None:
        """Drop the backing collection and every point in it."""
        await self._client.delete_collection(self._collection_name)
        self._collection_ready = False
        logger.info("Deleted collection '%s'", self._collection_name)

    async def similarity_search(
        self,
        query: str,
        k: int = 4,
        filter: FilterLike | None = None,
    ) -> list[Document]:
        """Return up to k documents closest to the query, closest first."""
        results = await self.similarity_search_with_score(query, k=k, filter=filter)
        return [document for document, _ in results]

    async def similarity_search_with_score(
        self,
        query: str,
        k: int = 4,
        filter: FilterLike | None = None,
    ) -> list[tuple[Document, float]]:
        """Return documents with their backend similarity scores."""
        _validate_k(k)
        embedding = await self._embeddings.embed(query)
        return await self._query(embedding, k, filter)

    async def similarity_search_by_vector(
        self,
        embedding: list[float],
        k: int = 4,
        filter: FilterLike | None = None,
    ) -> list[Document]:
        """Return up to k documents closest to a precomputed embedding."""
        _validate_k(k)
        results = await self._query(embedding, k, filter)
        return [document for document, _ in results]

    async def add_documents(
        self,
        documents: Sequence[Document],
        ids: Sequence[DocumentId] | None = None,
    ) -> list[DocumentId]:
        """Insert documents, or fully replace the points with the given ids."""
        documents = list(documents)
        return await self.add_texts(
            [doc.page_content for doc in documents],
            [doc.metadata for doc in documents],
            ids=ids,
        )

    async def add_texts(
        self,
        texts: Sequence[str],
        metadatas: Sequence[Mapping[str, Any]] | None = None,
        ids: Sequence[DocumentId] | None = None,
    ) -> list[DocumentId]:
        """Embed texts and upsert them as points.

        Returns:
            Point ids in input order; freshly generated where ids is omitted.
            UUID strings are returned in canonical lowercase form.

        Raises:
            ConfigurationError: If metadatas or ids differ in length from texts,
                or an id is neither an unsigned integer nor a UUID.
            CollectionNotFoundError: If the collection does not exist.
        """
        texts = list(texts)
        metadatas = _normalize_metadatas(texts, metadatas)
        if ids is not None and len(ids) != len(texts):
            raise ConfigurationError(
                f"Got {len(ids)} ids for {len(texts)} documents."
            )
        if not texts:
            return []
        point_ids = (
            [_normalize_point_id(point_id) for point_id in ids]
            if ids is not None
            else [_new_point_id() for _ in texts]
        )

        await self._require_collection()
        vectors = await self._embed_texts(texts)
        await self._write(texts, metadatas, vectors, point_ids)
        logger.debug(
            "Upserted %d documents into collection '%s'",
            len(point_ids),
            self._collection_name,
        )
        return point_ids

    async def delete(
        self,
        ids: Sequence[DocumentId] | None = None,
        filter: FilterLike | None = None,
    ) -> None:
        """Delete points by id or by filter, but not both.

        Raises:
            ConfigurationError: If neither or both of ids and filter are given.
            CollectionNotFoundError: If the collection does not exist.
        """
        if ids is not None and filter is not None:
            raise ConfigurationError("Pass either ids or filter to delete, not both.")
        if ids is None and filter is None:
            raise ConfigurationError("delete requires ids or a filter.")

        selector: models.PointsSelector
        if ids is not None:
            ids = [_normalize_point_id(point_id) for point_id in ids]
            if not ids:
                return
            selector = models.PointIdsList(points=ids)
        else:
            selector = models.FilterSelector(filter=self._normalize_filter(filter))

        await self._require_collection()
        await self._client.delete(
            collection_name=self._collection_name,
            points_selector=selector,
            wait=True,
        )
        logger.debug("Deleted points from collection '%s'", self._collection_name)

    async def _query(
        self,
        embedding: list[float],
        k: int,
        filter: FilterLike | None,
    ) -> list[tuple[Document, float]]:
        await self._require_collection()
        response = await self._client.query_points(
            collection_name=self._collection_name,
            query=embedding,
            using=self._vector_name,
            query_filter=self._normalize_filter(filter),
            limit=k,
            with_payload=True,
        )
        return [(self._to_document(point), point.score) for point in response.points]

    async def _write(
        self,
        texts: list[str],
        metadatas: list[Mapping[str, Any]],
        vectors: list[list[float]],
        ids: list[DocumentId],
    ) -> None:
        if not texts:
            return
        points = [
            models.PointStruct(
                id=point_id,
                vector=self._build_vector_struct(vector),
                payload=self._build_payload(text, metadata),
            )
            for point_id, text, metadata, vector in zip(
                ids, texts, metadatas, vectors, strict=True
            )
        ]
        await self._client.upsert(
            collection_name=self._collection_name,
            points=points,
            wait=True,
        )

    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        vectors = await self._embeddings.embed_batch(texts)
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Embedder returned {len(vectors)} vectors for {len(texts)} texts."
            )
        return vectors

    async def _require_collection(self) -> None:
        """Raise unless the backing collection exists."""
        if self._collection_ready:
            return
        if not await self._client.collection_exists(self._collection_name):
            raise CollectionNotFoundError(self._collection_name)
        self._collection_ready = True

    def _build_payload(self, text: str, metadata: Mapping[str, Any]) -> dict[str, Any]:
        return {self._text_key: text, **self._schema.flatten(metadata)}

    def _to_document(self, point: models.ScoredPoint) -> Document:
        payload = point.payload or {}
        return Document(
            page_content=payload.get(self._text_key, ""),
            metadata=self._schema.unflatten(payload),
            id=point.id,
        )

    def _normalize_filter(self, filter: FilterLike | None) -> models.Filter | None:
        """Normalize filter input to a Qdrant Filter object."""
        if filter is None:
            return None
        if isinstance(filter, models.Filter):
            return filter
        return models.Filter.model_validate(filter)

    def _build_vector_struct(self, embedding: list[float]) -> models.VectorStruct:
        """Build the vector struct for Qdrant APIs."""
        if self._vector_name is None:
            return embedding
        return {self._vector_name: embedding}

    def _build_vectors_config(
        self,
        vector_size: int,
    ) -> models.VectorParams | dict[str, models.VectorParams]:
        params = models.VectorParams(size=vector_size, distance=self._distance)
        if self._vector_name is None:
            return params
        return {self._vector_name: params}


def _normalize_metadatas(
    texts: list[str],
    metadatas: Sequence[Mapping[str, Any]] | None,
) -> list[Mapping[str, Any]]:
    if metadatas is None:
        return [{} for _ in texts]
    metadatas = list(metadatas)
    if len(metadatas) != len(texts):
        raise ConfigurationError(
            f"Got {len(metadatas)} metadata entries for {len(texts)} texts."
        )
    return metadatas


def _validate_k(k: int) -> None:
    if k < 1:
        raise ConfigurationError("k must be at least 1.")


def _new_point_id() -> str:
    return str(uuid.uuid4())


def _normalize_point_id(point_id: DocumentId) -> DocumentId:
    """Return a Qdrant point id: an unsigned int or a canonical UUID string."""
    if isinstance(point_id, bool):
        raise ConfigurationError(f"Invalid document id: {point_id!r}")
    if isinstance(point_id, int):
        if point_id < 0:
            raise ConfigurationError(f"Integer document ids must be unsigned: {point_id}")
        return point_id
    try:
        return str(uuid.UUID(point_id))
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigurationError(
            f"Document ids must be unsigned integers or UUIDs, got {point_id!r}"
        ) from e
