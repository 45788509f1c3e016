from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from pathlib import Path

import pytest
from dotenv import load_dotenv
from qdrant_client import AsyncQdrantClient

from vector_doc_store.embeddings.base import Embeddings

EMBEDDING_DIM = 32


def pytest_configure() -> None:
    """Load .env for integration tests without overriding existing env vars."""
    repo_root = Path(__file__).resolve().parents[1]
    load_dotenv(repo_root / ".env", override=False)


class CharCountEmbeddings(Embeddings):
    """Deterministic embedder: character histogram plus a constant bias term.

    Identical texts map to identical vectors, so a text is always its own
    nearest neighbour under cosine distance.
    """

    def __init__(self, dim: int = EMBEDDING_DIM) -> None:
        self.dim = dim
        self.calls: list[list[str]] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append([text])
        return self._vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        vector[0] = 1.0
        for char in text:
            vector[1 + ord(char) % (self.dim - 1)] += 1.0
        return vector


@pytest.fixture
def embeddings() -> CharCountEmbeddings:
    return CharCountEmbeddings()


@pytest.fixture
async def memory_client() -> AsyncIterator[AsyncQdrantClient]:
    """Qdrant client running in-process against an in-memory collection store."""
    client = AsyncQdrantClient(location=":memory:")
    yield client
    await client.close()
