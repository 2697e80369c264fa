"""
Embedding generation for Confessio.

Uses Gemini text embeddings (768 dimensions).
"""

from .gemini import get_embedder, GeminiEmbedder

__all__ = ["get_embedder", "GeminiEmbedder"]
