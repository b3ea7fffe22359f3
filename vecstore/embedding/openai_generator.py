"""
Embedding generator backed by an OpenAI-compatible API.

Includes resilience features:
- Bounded retry on server errors (5xx) and connection errors with capped backoff
- Batching according to the configured batch size
"""

import asyncio
from typing import Dict, List, Optional, Sequence

from openai import AsyncOpenAI, APIConnectionError, APIStatusError

from ..core import EmbeddingConfig, EmbeddingError, get_config_or_defaults, get_logger

logger = get_logger(__name__)

RETRY_DELAY = 2.0  # Base delay between retries (seconds)
MAX_RETRY_DELAY = 60.0


class OpenAIEmbeddingGenerator:
    """
    EmbeddingGenerator using the OpenAI embeddings endpoint.

    The client is created lazily on first use.
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        """
        Initialize the generator.

        Args:
            config: Embedding settings. Defaults to the global config.
        """
        self.config = config or get_config_or_defaults().embedding
        self._client: Optional[AsyncOpenAI] = None

    def _ensure_client(self) -> AsyncOpenAI:
        """Lazily initialize the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self.config.endpoint or None,
                api_key=self.config.api_key or None,
                max_retries=0
            )
            logger.info(f"Embedding generator initialized with model: {self.config.model}")
        return self._client

    async def generate(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed.

        Returns:
            One embedding vector per text.

        Raises:
            EmbeddingError: If the API keeps failing or returns
                vectors of unexpected size.
        """
        if not texts:
            return []

        client = self._ensure_client()
        batch_size = max(1, self.config.batch_size)
        embeddings: List[List[float]] = []

        for start in range(0, len(texts), batch_size):
            batch = list(texts[start:start + batch_size])
            embeddings.extend(await self._embed_batch(client, batch))

            if len(texts) > batch_size:
                logger.debug(f"Embedded batch {start // batch_size + 1}/{(len(texts) + batch_size - 1) // batch_size}")

        for vector in embeddings:
            if len(vector) != self.config.dimensions:
                raise EmbeddingError(
                    f"Model returned {len(vector)} dimensions, expected {self.config.dimensions}",
                    {"model": self.config.model}
                )

        return embeddings

    async def _embed_batch(self, client: AsyncOpenAI, texts: List[str]) -> List[List[float]]:
        """Embed one batch, retrying on server and connection errors."""
        attempt = 0

        while True:
            try:
                response = await client.embeddings.create(
                    model=self.config.model,
                    input=texts
                )
                return [item.embedding for item in response.data]

            except APIStatusError as e:
                if e.status_code < 500 or attempt >= self.config.max_retries:
                    raise EmbeddingError(
                        f"Embedding request failed with status {e.status_code}: {e}",
                        {"status_code": e.status_code, "attempts": attempt + 1}
                    ) from e
                reason = f"server error {e.status_code}"

            except APIConnectionError as e:
                if attempt >= self.config.max_retries:
                    raise EmbeddingError(
                        f"Embedding endpoint unreachable: {e}",
                        {"attempts": attempt + 1}
                    ) from e
                reason = "connection error"

            attempt += 1
            delay = min(RETRY_DELAY * (2 ** (attempt - 1)), MAX_RETRY_DELAY)
            logger.warning(f"Embedding {reason}, retry #{attempt} in {delay:.1f}s")
            await asyncio.sleep(delay)

    def get_model_info(self) -> Dict:
        """
        Get information about the embedding model.

        Returns:
            Dictionary with model metadata.
        """
        return {
            "model": self.config.model,
            "dimensions": self.config.dimensions,
            "endpoint": self.config.endpoint,
            "initialized": self._client is not None
        }
