from abc import ABC, abstractmethod
from collections.abc import Sequence


class Embeddings(ABC):
    """Abstract interface for text embedding providers."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for text."""
        ...

    @abstractmethod
    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Generate one embedding per input text, preserving input order."""
        ...
