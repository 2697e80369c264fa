"""
Gemini text embeddings for Confessio.

Stored chunk and note vectors are 768-dimensional; queries are embedded
with the same model and dimensionality.
"""

import logging
from typing import Optional

from confessio.config import config

logger = logging.getLogger(__name__)

# Shorter texts carry too little signal to embed
MIN_TEXT_LENGTH = 10


class GeminiEmbedder:
    """
    Async query embedder backed by the Gemini embedding API.

    Usage:
        embedder = GeminiEmbedder()
        vector = await embedder.embed("O que é a justificação pela fé?")
    """

    def __init__(
        self,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        api_key: Optional[str] = None,
    ):
        self.model = model or config.EMBEDDING_MODEL
        self.dimensions = dimensions or config.EMBEDDING_DIM
        self.api_key = api_key or config.GEMINI_API_KEY
        self._client = None

    @property
    def client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            if not self.api_key:
                logger.warning("GEMINI_API_KEY not set, embeddings disabled")
                return None

            from google import genai

            self._client = genai.Client(api_key=self.api_key)

        return self._client

    async def embed(self, text: Optional[str]) -> Optional[list[float]]:
        """
        Embed one query text.

        Returns:
            Vector, or None when the text is too short or no client is
            configured. API errors propagate to the caller.
        """
        if not text or len(text.strip()) < MIN_TEXT_LENGTH:
            logger.debug("Text too short to embed")
            return None

        client = self.client
        if client is None:
            return None

        response = await client.aio.models.embed_content(
            model=self.model,
            contents=text,
            config={
                "task_type": "RETRIEVAL_QUERY",
                "output_dimensionality": self.dimensions,
            },
        )

        if not response.embeddings:
            logger.warning("Embedding response was empty")
            return None

        return list(response.embeddings[0].values)


# Singleton instance
_embedder: Optional[GeminiEmbedder] = None


def get_embedder() -> GeminiEmbedder:
    """Get or create the shared embedder."""
    global _embedder
    if _embedder is None:
        _embedder = GeminiEmbedder()
    return _embedder
