import asyncio
import logging
from collections.abc import Sequence
from types import TracebackType
from typing import Any

from openai import APIConnectionError, AsyncOpenAI, RateLimitError

from vector_doc_store.embeddings.base import Embeddings
from vector_doc_store.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class OpenAIEmbeddings(Embeddings):
    """OpenAI implementation of Embeddings with batched requests."""

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_BATCH_SIZE = 256
    MAX_RETRIES = 5
    BASE_DELAY = 1.0  # Base delay in seconds for exponential backoff

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        dimensions: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize OpenAI embeddings client.

        Args:
            api_key: OpenAI API key.
            model: Embedding model (default: text-embedding-3-small).
            dimensions: Optional output dimensionality for models that support it.
            batch_size: Maximum number of texts sent per embeddings request.
        """
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1.")
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model or self.DEFAULT_MODEL
        self._dimensions = dimensions
        self._batch_size = batch_size

    async def __aenter__(self) -> "OpenAIEmbeddings":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def embed(self, text: str) -> list[float]:
        """Generate embedding vector for text.

        Raises:
            EmbeddingError: If the API request fails after retries.
        """
        vectors = await self._embed_chunk([text])
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Generate embeddings for texts, one request per batch.

        Args:
            texts: Texts to embed.

        Returns:
            One embedding per input text, in input order.

        Raises:
            EmbeddingError: If a request fails after retries or the response
                does not match the request.
        """
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            chunk = list(texts[start : start + self._batch_size])
            vectors.extend(await self._embed_chunk(chunk))
        return vectors

    async def _embed_chunk(self, texts: list[str]) -> list[list[float]]:
        kwargs: dict[str, Any] = {"model": self._model, "input": texts}
        if self._dimensions is not None:
            kwargs["dimensions"] = self._dimensions

        response = await self._request_with_retry(
            self._client.embeddings.create, **kwargs
        )

        if len(response.data) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, received {len(response.data)}"
            )
        items = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in items]

    async def _request_with_retry[T](
        self,
        func: Any,
        **kwargs: Any,
    ) -> T:
        """Execute an API request with exponential backoff retry.

        Raises:
            EmbeddingError: If all retries are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(self.MAX_RETRIES):
            try:
                return await func(**kwargs)
            except RateLimitError as e:
                last_error = e
                delay = self.BASE_DELAY * (2**attempt)
                logger.warning(
                    "Rate limited (attempt %d/%d), retrying in %.1f seconds",
                    attempt + 1,
                    self.MAX_RETRIES,
                    delay,
                )
                await asyncio.sleep(delay)
            except APIConnectionError as e:
                last_error = e
                delay = self.BASE_DELAY * (2**attempt)
                logger.warning(
                    "Connection error (attempt %d/%d), retrying in %.1f seconds: %s",
                    attempt + 1,
                    self.MAX_RETRIES,
                    delay,
                    str(e),
                )
                await asyncio.sleep(delay)

        raise EmbeddingError(
            f"Embedding request failed after {self.MAX_RETRIES} retries"
        ) from last_error
